"""
Application and payment state machines.

    pending ──► under_review ──► approved | rejected
       │              │
       ├──► approved | rejected   (review step is optional)
       └──► cancelled ◄──┘

approved, rejected and cancelled are terminal.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, FrozenSet

from landregistry.core.errors import InvalidTransitionError
from landregistry.domain.enums import ApplicationStatus, PaymentStatus

SECONDS_PER_DAY = 86400

APPLICATION_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset(
        {
            ApplicationStatus.UNDER_REVIEW,
            ApplicationStatus.APPROVED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.CANCELLED,
        }
    ),
    ApplicationStatus.UNDER_REVIEW: frozenset(
        {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED, ApplicationStatus.CANCELLED}
    ),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING, PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def can_transition(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    return target in APPLICATION_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: ApplicationStatus, target: ApplicationStatus) -> None:
    if not APPLICATION_TRANSITIONS.get(current):
        raise InvalidTransitionError(
            message=f"Application is already {current.value} and cannot change status",
            context={"from": current.value, "to": target.value},
        )
    if not can_transition(current, target):
        raise InvalidTransitionError(
            message=f"Cannot move application from {current.value} to {target.value}",
            context={"from": current.value, "to": target.value},
        )


def ensure_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if target not in PAYMENT_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(
            message=f"Cannot move payment from {current.value} to {target.value}",
            context={"from": current.value, "to": target.value},
        )


def elapsed_processing_days(created_at: datetime, now: datetime) -> int:
    """Whole days elapsed, truncated toward zero (elapsed seconds / 86400)."""
    seconds = (now - created_at).total_seconds()
    return int(seconds / SECONDS_PER_DAY)

"""
Closed update commands.

Persisted entities are only mutated through these commands; the set of allowed
mutations is therefore enumerable per entity.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from landregistry.domain.enums import ApplicationStatus, PaymentStatus


@dataclass(frozen=True)
class SetStatus:
    status: ApplicationStatus
    actual_processing_days: Optional[int] = None


@dataclass(frozen=True)
class SetReview:
    reviewed_by: str
    reviewed_at: datetime


@dataclass(frozen=True)
class AppendReviewNotes:
    notes: str


@dataclass(frozen=True)
class SetPayment:
    payment_status: PaymentStatus
    reference: Optional[str] = None
    paid_at: Optional[datetime] = None


ApplicationCommand = Union[SetStatus, SetReview, AppendReviewNotes, SetPayment]


@dataclass(frozen=True)
class MarkRegistered:
    pass


ParcelCommand = MarkRegistered


@dataclass(frozen=True)
class Revoke:
    revoked_by: str
    revoked_at: datetime
    reason: str


CertificateCommand = Revoke

"""
Land application data model
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from landregistry.domain.enums import (
    ApplicationStatus,
    ApplicationType,
    PaymentStatus,
    TERMINAL_APPLICATION_STATUSES,
)


@dataclass
class Application:
    """A claim by one applicant against exactly one parcel."""

    id: int
    application_uuid: str
    applicant_id: str
    parcel_id: int
    application_type: ApplicationType
    status: ApplicationStatus

    # fee is fixed at submission
    fee_amount: Decimal
    currency: str = "XAF"
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None

    priority_level: int = 1
    notes: Optional[str] = None
    review_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    estimated_processing_days: Optional[int] = None
    actual_processing_days: Optional[int] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_APPLICATION_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "application_uuid": self.application_uuid,
            "applicant_id": self.applicant_id,
            "parcel_id": self.parcel_id,
            "application_type": self.application_type.value,
            "status": self.status.value,
            "fee_amount": str(self.fee_amount),
            "currency": self.currency,
            "payment_status": self.payment_status.value,
            "payment_reference": self.payment_reference,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "priority_level": self.priority_level,
            "notes": self.notes,
            "review_notes": self.review_notes,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "estimated_processing_days": self.estimated_processing_days,
            "actual_processing_days": self.actual_processing_days,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

from __future__ import annotations

from enum import Enum


class LandType(str, Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    AGRICULTURAL = "agricultural"
    INDUSTRIAL = "industrial"


class ParcelStatus(str, Enum):
    AVAILABLE = "available"
    REGISTERED = "registered"
    DISPUTED = "disputed"
    UNDER_REVIEW = "under_review"


class ApplicationType(str, Enum):
    REGISTRATION = "registration"
    TRANSFER = "transfer"
    SUBDIVISION = "subdivision"
    MUTATION = "mutation"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class CertificateStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class AuditAction(str, Enum):
    """Closed vocabulary of audit actions written by the engine."""

    PARCEL_CREATED = "PARCEL_CREATED"
    APPLICATION_CREATED = "APPLICATION_CREATED"
    APPLICATION_STATUS_CHANGED = "APPLICATION_STATUS_CHANGED"
    CERTIFICATE_ISSUED = "CERTIFICATE_ISSUED"
    CERTIFICATE_REVOKED = "CERTIFICATE_REVOKED"
    PAYMENT_INITIATED = "PAYMENT_INITIATED"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"


class VerificationFailure(str, Enum):
    NOT_FOUND = "not_found"
    NOT_ACTIVE = "not_active"
    HASH_MISMATCH = "hash_mismatch"


ACTIVE_APPLICATION_STATUSES = frozenset({ApplicationStatus.PENDING, ApplicationStatus.UNDER_REVIEW})
TERMINAL_APPLICATION_STATUSES = frozenset(
    {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED, ApplicationStatus.CANCELLED}
)
REVIEWED_APPLICATION_STATUSES = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED})

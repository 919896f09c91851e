from .enums import (
    ApplicationStatus,
    ApplicationType,
    AuditAction,
    CertificateStatus,
    LandType,
    ParcelStatus,
    PaymentStatus,
    VerificationFailure,
)
from .parcel import Parcel
from .application import Application
from .certificate import Certificate, VerificationResult
from .audit import AuditEvent
from .fees import FeeSchedule, ProcessingSchedule, compute_fee

__all__ = [
    "ApplicationStatus",
    "ApplicationType",
    "AuditAction",
    "CertificateStatus",
    "LandType",
    "ParcelStatus",
    "PaymentStatus",
    "VerificationFailure",
    "Parcel",
    "Application",
    "Certificate",
    "VerificationResult",
    "AuditEvent",
    "FeeSchedule",
    "ProcessingSchedule",
    "compute_fee",
]

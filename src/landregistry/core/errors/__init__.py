"""
Unified error module.
"""

from .errors import (
    ErrorSeverity,
    LandRegistryError,
    NotFoundError,
    ConflictError,
    InvalidTransitionError,
    InvalidInputError,
    StorageError,
    IntegrityViolationError,
    ParcelNotFoundError,
    ApplicationNotFoundError,
    CertificateNotFoundError,
    DuplicateParcelNumberError,
    DuplicatePendingApplicationError,
    ParcelAlreadyRegisteredError,
    DuplicateCertificateError,
    AlreadyRevokedError,
    PaymentRequiredError,
    ReviewerRequiredError,
    TransactionTimeoutError,
    AuditWriteError,
)

__all__ = [
    "ErrorSeverity",
    "LandRegistryError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "InvalidInputError",
    "StorageError",
    "IntegrityViolationError",
    "ParcelNotFoundError",
    "ApplicationNotFoundError",
    "CertificateNotFoundError",
    "DuplicateParcelNumberError",
    "DuplicatePendingApplicationError",
    "ParcelAlreadyRegisteredError",
    "DuplicateCertificateError",
    "AlreadyRevokedError",
    "PaymentRequiredError",
    "ReviewerRequiredError",
    "TransactionTimeoutError",
    "AuditWriteError",
]

"""
Typed error hierarchy for the registry engine.

Every failure a caller can observe maps to exactly one kind: not-found, conflict,
invalid-transition, invalid-input, storage or integrity.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class ErrorSeverity(Enum):
    WARNING = "warning"      # caller mistake, nothing persisted
    ERROR = "error"          # operation failed, rolled back
    CRITICAL = "critical"    # integrity of the record is at stake


@dataclass(eq=False)
class LandRegistryError(Exception):
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    code: str = "UNKNOWN"
    context: Dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# ---- kinds ----

@dataclass(eq=False)
class NotFoundError(LandRegistryError):
    severity: ErrorSeverity = ErrorSeverity.WARNING
    code: str = "NOT_FOUND"


@dataclass(eq=False)
class ConflictError(LandRegistryError):
    severity: ErrorSeverity = ErrorSeverity.WARNING
    code: str = "CONFLICT"


@dataclass(eq=False)
class InvalidTransitionError(LandRegistryError):
    severity: ErrorSeverity = ErrorSeverity.WARNING
    code: str = "INVALID_TRANSITION"


@dataclass(eq=False)
class InvalidInputError(LandRegistryError):
    severity: ErrorSeverity = ErrorSeverity.WARNING
    code: str = "INVALID_INPUT"


@dataclass(eq=False)
class StorageError(LandRegistryError):
    code: str = "STORAGE_ERROR"


@dataclass(eq=False)
class IntegrityViolationError(LandRegistryError):
    severity: ErrorSeverity = ErrorSeverity.CRITICAL
    code: str = "INTEGRITY_VIOLATION"


# ---- not found ----

@dataclass(eq=False)
class ParcelNotFoundError(NotFoundError):
    code: str = "PARCEL_NOT_FOUND"


@dataclass(eq=False)
class ApplicationNotFoundError(NotFoundError):
    code: str = "APPLICATION_NOT_FOUND"


@dataclass(eq=False)
class CertificateNotFoundError(NotFoundError):
    code: str = "CERTIFICATE_NOT_FOUND"


# ---- conflicts ----

@dataclass(eq=False)
class DuplicateParcelNumberError(ConflictError):
    code: str = "DUPLICATE_PARCEL_NUMBER"


@dataclass(eq=False)
class DuplicatePendingApplicationError(ConflictError):
    code: str = "DUPLICATE_PENDING_APPLICATION"


@dataclass(eq=False)
class ParcelAlreadyRegisteredError(ConflictError):
    code: str = "PARCEL_ALREADY_REGISTERED"


@dataclass(eq=False)
class DuplicateCertificateError(ConflictError):
    code: str = "DUPLICATE_CERTIFICATE"


@dataclass(eq=False)
class AlreadyRevokedError(ConflictError):
    code: str = "ALREADY_REVOKED"


# ---- transitions / input ----

@dataclass(eq=False)
class PaymentRequiredError(InvalidTransitionError):
    code: str = "PAYMENT_REQUIRED"


@dataclass(eq=False)
class ReviewerRequiredError(InvalidInputError):
    code: str = "REVIEWER_REQUIRED"


# ---- storage / integrity ----

@dataclass(eq=False)
class TransactionTimeoutError(StorageError):
    code: str = "TRANSACTION_TIMEOUT"


@dataclass(eq=False)
class AuditWriteError(IntegrityViolationError):
    code: str = "AUDIT_WRITE_FAILED"

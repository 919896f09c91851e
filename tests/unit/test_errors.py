"""
Error hierarchy unit tests
"""

import pytest

from landregistry.core.errors import (
    AlreadyRevokedError,
    AuditWriteError,
    ConflictError,
    DuplicatePendingApplicationError,
    ErrorSeverity,
    IntegrityViolationError,
    InvalidInputError,
    InvalidTransitionError,
    LandRegistryError,
    NotFoundError,
    ParcelAlreadyRegisteredError,
    ParcelNotFoundError,
    PaymentRequiredError,
    ReviewerRequiredError,
    StorageError,
    TransactionTimeoutError,
)


class TestErrorSeverity:
    def test_severity_values(self):
        assert ErrorSeverity.WARNING.value == "warning"
        assert ErrorSeverity.ERROR.value == "error"
        assert ErrorSeverity.CRITICAL.value == "critical"


class TestLandRegistryError:
    def test_error_str(self):
        err = LandRegistryError(message="Something broke", code="TEST")
        assert str(err) == "[TEST] Something broke"

    def test_error_with_context(self):
        err = LandRegistryError(message="Failed", context={"parcel_id": 7})
        assert err.context == {"parcel_id": 7}

    def test_is_raisable(self):
        with pytest.raises(LandRegistryError):
            raise ParcelNotFoundError(message="Parcel 1 not found")


class TestConcreteErrors:
    def test_subclass_keeps_its_own_code(self):
        assert ParcelNotFoundError(message="x").code == "PARCEL_NOT_FOUND"
        assert DuplicatePendingApplicationError(message="x").code == "DUPLICATE_PENDING_APPLICATION"
        assert TransactionTimeoutError(message="x").code == "TRANSACTION_TIMEOUT"

    @pytest.mark.parametrize(
        "error_cls, kind",
        [
            (ParcelNotFoundError, NotFoundError),
            (ParcelAlreadyRegisteredError, ConflictError),
            (AlreadyRevokedError, ConflictError),
            (PaymentRequiredError, InvalidTransitionError),
            (ReviewerRequiredError, InvalidInputError),
            (TransactionTimeoutError, StorageError),
            (AuditWriteError, IntegrityViolationError),
        ],
    )
    def test_kinds(self, error_cls, kind):
        assert issubclass(error_cls, kind)
        assert issubclass(error_cls, LandRegistryError)

    def test_caller_mistakes_are_warnings(self):
        assert ParcelNotFoundError(message="x").severity == ErrorSeverity.WARNING
        assert ParcelAlreadyRegisteredError(message="x").severity == ErrorSeverity.WARNING

    def test_audit_failure_is_critical(self):
        assert AuditWriteError(message="x").severity == ErrorSeverity.CRITICAL

    def test_storage_failure_is_error(self):
        assert TransactionTimeoutError(message="x").severity == ErrorSeverity.ERROR

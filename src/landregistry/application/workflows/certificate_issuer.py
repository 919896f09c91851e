"""
Certificate issuer.

Certificates are created only inside the transaction that approves their
application, bound 1:1 to it. Each carries:

- a certificate number built from issuance time, parcel and application ids
- a random public verification code, distinct from the number
- a SHA-256 integrity hash over the canonical certificate content

``verify`` and ``lookup_by_verification_code`` are the public read paths: they report
failure as a ``VerificationResult`` and never raise for an unknown certificate.
"""

from __future__ import annotations

import hmac
import secrets
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from landregistry.core.errors import (
    AlreadyRevokedError,
    CertificateNotFoundError,
    DuplicateCertificateError,
    InvalidInputError,
    InvalidTransitionError,
    StorageError,
)
from landregistry.domain.application import Application
from landregistry.domain.certificate import Certificate, VerificationResult, compute_certificate_hash
from landregistry.domain.commands import Revoke
from landregistry.domain.enums import (
    ApplicationStatus,
    AuditAction,
    CertificateStatus,
    VerificationFailure,
)
from landregistry.infrastructure.stores.repositories import CertificateRepository, certificate_from_model
from landregistry.infrastructure.stores.unit_of_work import (
    TransactionalCoordinator,
    UnitOfWork,
    transactional,
)

DEFAULT_NUMBER_PREFIX = "CERT"
DEFAULT_VALIDITY_YEARS = 99
DEFAULT_VERIFICATION_CODE_BYTES = 16

_MAX_CODE_ATTEMPTS = 5


def add_years(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return moment.replace(year=moment.year + years, day=28)


def format_certificate_number(prefix: str, issued_at: datetime, parcel_id: int, application_id: int) -> str:
    return f"{prefix}-{issued_at:%Y%m%d%H%M%S%f}-{parcel_id}-{application_id}"


class CertificateIssuer:
    def __init__(
        self,
        coordinator: TransactionalCoordinator,
        *,
        number_prefix: str = DEFAULT_NUMBER_PREFIX,
        validity_years: Optional[int] = DEFAULT_VALIDITY_YEARS,
        verification_code_bytes: int = DEFAULT_VERIFICATION_CODE_BYTES,
    ):
        self.coordinator = coordinator
        self.number_prefix = number_prefix
        self.validity_years = validity_years
        self.verification_code_bytes = verification_code_bytes

    @transactional
    def issue(self, uow: UnitOfWork, application: Application, issuer: str) -> Certificate:
        if application.status != ApplicationStatus.APPROVED:
            raise InvalidTransitionError(
                message=f"Cannot issue a certificate for a {application.status.value} application",
                context={"application_id": application.id},
            )

        repo = CertificateRepository(uow.session)
        if repo.get_by_application(application.id) is not None:
            raise DuplicateCertificateError(
                message=f"Certificate already exists for application {application.id}",
                context={"application_id": application.id},
            )

        issued_at = uow.now
        number = format_certificate_number(self.number_prefix, issued_at, application.parcel_id, application.id)
        row = repo.add(
            certificate_number=number,
            parcel_id=application.parcel_id,
            application_id=application.id,
            issued_by=issuer,
            issued_at=issued_at,
            expires_at=add_years(issued_at, self.validity_years) if self.validity_years else None,
            certificate_hash=compute_certificate_hash(
                certificate_number=number,
                parcel_id=application.parcel_id,
                application_id=application.id,
                issued_by=issuer,
                issued_at=issued_at,
            ),
            verification_code=self._new_verification_code(repo),
            metadata={"applicant_id": application.applicant_id, "application_type": application.application_type.value},
        )
        uow.record(
            AuditAction.CERTIFICATE_ISSUED,
            f"Certificate {number} issued for application {application.id}",
            actor_id=issuer,
            resource_type="certificate",
            resource_id=row.id,
            metadata={
                "certificate_number": number,
                "application_id": application.id,
                "parcel_id": application.parcel_id,
            },
        )
        logger.info(f"Certificate {number} issued by {issuer}")
        return certificate_from_model(row)

    @transactional
    def revoke(self, uow: UnitOfWork, certificate_id: int, revoker: str, reason: str) -> Certificate:
        repo = CertificateRepository(uow.session)
        row = repo.get(certificate_id, for_update=True)
        if row is None:
            raise CertificateNotFoundError(
                message=f"Certificate {certificate_id} not found",
                context={"certificate_id": certificate_id},
            )
        if row.status == CertificateStatus.REVOKED.value:
            logger.warning(f"Certificate {row.certificate_number} is already revoked")
            raise AlreadyRevokedError(
                message=f"Certificate {row.certificate_number} is already revoked",
                context={"certificate_id": certificate_id, "revoked_at": row.revoked_at.isoformat()},
            )
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInputError(message="A revocation reason is required", context={"certificate_id": certificate_id})
        if not revoker:
            raise InvalidInputError(message="A revoking actor is required", context={"certificate_id": certificate_id})

        repo.apply(row, Revoke(revoked_by=revoker, revoked_at=uow.now, reason=reason), uow.now)
        uow.record(
            AuditAction.CERTIFICATE_REVOKED,
            f"Certificate {row.certificate_number} revoked: {reason}",
            actor_id=revoker,
            resource_type="certificate",
            resource_id=row.id,
            metadata={"certificate_number": row.certificate_number, "reason": reason},
            severity="warn",
        )
        logger.info(f"Certificate {row.certificate_number} revoked by {revoker}")
        return certificate_from_model(row)

    def verify(self, certificate_number: str, supplied_hash: str) -> VerificationResult:
        now = self.coordinator.now()

        def _work(session) -> VerificationResult:
            row = CertificateRepository(session).get_by_number(certificate_number)
            if row is None:
                return VerificationResult.fail(VerificationFailure.NOT_FOUND)
            certificate = certificate_from_model(row)
            if certificate.status != CertificateStatus.ACTIVE or certificate.is_expired(now):
                return VerificationResult.fail(VerificationFailure.NOT_ACTIVE, certificate)
            if not hmac.compare_digest(str(supplied_hash or "").encode(), certificate.certificate_hash.encode()):
                return VerificationResult.fail(VerificationFailure.HASH_MISMATCH, certificate)
            return VerificationResult.ok(certificate)

        return self._public_read(_work)

    def lookup_by_verification_code(self, code: str) -> VerificationResult:
        """Check a certificate by its public verification code; the stored hash must still match its content."""
        now = self.coordinator.now()

        def _work(session) -> VerificationResult:
            row = CertificateRepository(session).get_by_verification_code(code)
            if row is None:
                return VerificationResult.fail(VerificationFailure.NOT_FOUND)
            certificate = certificate_from_model(row)
            if certificate.status != CertificateStatus.ACTIVE or certificate.is_expired(now):
                return VerificationResult.fail(VerificationFailure.NOT_ACTIVE, certificate)
            if not hmac.compare_digest(certificate.expected_hash(), certificate.certificate_hash):
                return VerificationResult.fail(VerificationFailure.HASH_MISMATCH, certificate)
            return VerificationResult.ok(certificate)

        return self._public_read(_work)

    def get(self, certificate_id: int) -> Certificate:
        def _work(session):
            row = CertificateRepository(session).get(certificate_id)
            if row is None:
                raise CertificateNotFoundError(
                    message=f"Certificate {certificate_id} not found",
                    context={"certificate_id": certificate_id},
                )
            return certificate_from_model(row)

        return self.coordinator.read(_work)

    def get_by_number(self, certificate_number: str) -> Certificate:
        def _work(session):
            row = CertificateRepository(session).get_by_number(certificate_number)
            if row is None:
                raise CertificateNotFoundError(
                    message=f"Certificate {certificate_number} not found",
                    context={"certificate_number": certificate_number},
                )
            return certificate_from_model(row)

        return self.coordinator.read(_work)

    def get_for_application(self, application_id: int) -> Optional[Certificate]:
        def _work(session):
            row = CertificateRepository(session).get_by_application(application_id)
            return certificate_from_model(row) if row is not None else None

        return self.coordinator.read(_work)

    def list_for_applicant(self, applicant_id: str, limit: int = 100) -> List[Certificate]:
        return self.coordinator.read(
            lambda session: [
                certificate_from_model(r)
                for r in CertificateRepository(session).list_active_for_applicant(applicant_id, limit=limit)
            ]
        )

    def stats(self) -> Dict[str, Any]:
        now = self.coordinator.now()
        return self.coordinator.read(lambda session: CertificateRepository(session).stats(now))

    def _public_read(self, work) -> VerificationResult:
        try:
            return self.coordinator.read(work)
        except StorageError:
            logger.exception("Certificate verification failed on storage")
            raise

    def _new_verification_code(self, repo: CertificateRepository) -> str:
        for _ in range(_MAX_CODE_ATTEMPTS):
            code = secrets.token_hex(self.verification_code_bytes)
            if not repo.verification_code_exists(code):
                return code
        raise StorageError(message="Could not allocate a unique verification code")


"""
Application workflow.

Owns the application state machine (see ``landregistry.domain.lifecycle``) and the
approval path. Approval runs as one unit of work:

1. lock the application row, then the parcel row
2. recount approved applications for the parcel inside the same transaction
3. write review data and the new status
4. issue the certificate (joining the transaction)
5. mark the parcel registered
6. record ``APPLICATION_STATUS_CHANGED``

Any failure rolls every step back.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from loguru import logger

from landregistry.application.registries.parcel_registry import ParcelRegistry
from landregistry.application.workflows.certificate_issuer import CertificateIssuer
from landregistry.core.errors import (
    ApplicationNotFoundError,
    DuplicatePendingApplicationError,
    InvalidInputError,
    InvalidTransitionError,
    ParcelAlreadyRegisteredError,
    PaymentRequiredError,
    ReviewerRequiredError,
)
from landregistry.domain.application import Application
from landregistry.domain.commands import AppendReviewNotes, SetPayment, SetReview, SetStatus
from landregistry.domain.enums import (
    REVIEWED_APPLICATION_STATUSES,
    TERMINAL_APPLICATION_STATUSES,
    ApplicationStatus,
    AuditAction,
    PaymentStatus,
)
from landregistry.domain.fees import (
    DEFAULT_FEE_SCHEDULE,
    DEFAULT_PROCESSING_SCHEDULE,
    FeeSchedule,
    ProcessingSchedule,
    compute_fee,
    parse_application_type,
    parse_priority,
)
from landregistry.domain.lifecycle import (
    elapsed_processing_days,
    ensure_payment_transition,
    ensure_transition,
)
from landregistry.infrastructure.stores.models import ApplicationModel
from landregistry.infrastructure.stores.repositories import ApplicationRepository, application_from_model
from landregistry.infrastructure.stores.unit_of_work import (
    TransactionalCoordinator,
    UnitOfWork,
    transactional,
)

PAYMENT_AUDIT_ACTIONS = {
    PaymentStatus.PENDING: AuditAction.PAYMENT_INITIATED,
    PaymentStatus.PAID: AuditAction.PAYMENT_COMPLETED,
    PaymentStatus.FAILED: AuditAction.PAYMENT_FAILED,
    PaymentStatus.REFUNDED: AuditAction.PAYMENT_REFUNDED,
}


def _parse_status(value: Any) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise InvalidInputError(
            message=f"Unknown application status: {value!r}",
            context={"allowed": [s.value for s in ApplicationStatus]},
        ) from None


def _parse_payment_status(value: Any) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise InvalidInputError(
            message=f"Unknown payment status: {value!r}",
            context={"allowed": [s.value for s in PaymentStatus]},
        ) from None


class ApplicationWorkflow:
    def __init__(
        self,
        coordinator: TransactionalCoordinator,
        parcels: ParcelRegistry,
        issuer: CertificateIssuer,
        *,
        fee_schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
        processing_schedule: ProcessingSchedule = DEFAULT_PROCESSING_SCHEDULE,
        require_payment_for_approval: bool = False,
    ):
        self.coordinator = coordinator
        self.parcels = parcels
        self.issuer = issuer
        self.fee_schedule = fee_schedule
        self.processing_schedule = processing_schedule
        self.require_payment_for_approval = require_payment_for_approval

    @transactional
    def submit(
        self,
        uow: UnitOfWork,
        applicant_id: str,
        parcel_id: int,
        application_type: Any,
        notes: Optional[str] = None,
        *,
        priority: Any = 1,
    ) -> Application:
        if not applicant_id:
            raise InvalidInputError(message="An applicant id is required")
        app_type = parse_application_type(application_type)
        level = parse_priority(priority)

        # serializes submissions against the same parcel
        parcel = self.parcels.lock(uow, parcel_id)

        repo = ApplicationRepository(uow.session)
        existing = repo.find_active(applicant_id, parcel_id)
        if existing is not None:
            logger.warning(f"Applicant {applicant_id} already has open application {existing.id} on parcel {parcel_id}")
            raise DuplicatePendingApplicationError(
                message="Applicant already has an open application for this parcel",
                context={"applicant_id": applicant_id, "parcel_id": parcel_id, "application_id": existing.id},
            )

        fee = compute_fee(parcel, app_type, level, self.fee_schedule)
        row = repo.add(
            applicant_id=applicant_id,
            parcel_id=parcel_id,
            application_type=app_type,
            fee_amount=fee,
            currency=self.fee_schedule.currency,
            priority_level=level,
            estimated_processing_days=self.processing_schedule.estimate(app_type, level),
            notes=notes,
            now=uow.now,
        )
        uow.record(
            AuditAction.APPLICATION_CREATED,
            f"Application {row.id} submitted for parcel {parcel.parcel_number}",
            actor_id=applicant_id,
            resource_type="application",
            resource_id=row.id,
            metadata={
                "parcel_id": parcel_id,
                "application_type": app_type.value,
                "priority_level": level,
                "fee_amount": str(fee),
                "currency": self.fee_schedule.currency,
            },
        )
        logger.info(f"Application {row.id} submitted by {applicant_id}: {app_type.value}, fee {fee} {row.currency}")
        return application_from_model(row)

    @transactional
    def transition(
        self,
        uow: UnitOfWork,
        application_id: int,
        new_status: Any,
        reviewer: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Application:
        target = _parse_status(new_status)
        repo = ApplicationRepository(uow.session)
        row = self._load_for_update(repo, application_id)
        current = ApplicationStatus(row.status)

        ensure_transition(current, target)
        if target in REVIEWED_APPLICATION_STATUSES and not reviewer:
            raise ReviewerRequiredError(
                message=f"A reviewer is required to mark an application {target.value}",
                context={"application_id": application_id},
            )
        if (
            target == ApplicationStatus.APPROVED
            and self.require_payment_for_approval
            and row.payment_status != PaymentStatus.PAID.value
        ):
            raise PaymentRequiredError(
                message=f"Application {application_id} must be paid before approval",
                context={"application_id": application_id, "payment_status": row.payment_status},
            )

        if target == ApplicationStatus.APPROVED:
            self.parcels.lock(uow, row.parcel_id)
            # the recount runs under the parcel lock, so a concurrent approval of
            # the same parcel either committed before us or waits for our commit
            if self.parcels.count_approved_applications(uow, row.parcel_id) > 0:
                logger.warning(f"Parcel {row.parcel_id} already registered; refusing approval of {application_id}")
                raise ParcelAlreadyRegisteredError(
                    message=f"Parcel {row.parcel_id} already has an approved application",
                    context={"parcel_id": row.parcel_id, "application_id": application_id},
                )

        if target in REVIEWED_APPLICATION_STATUSES:
            repo.apply(row, SetReview(reviewed_by=reviewer, reviewed_at=uow.now), uow.now)
        if notes:
            repo.apply(row, AppendReviewNotes(notes=notes), uow.now)
        days = elapsed_processing_days(row.created_at, uow.now) if target in TERMINAL_APPLICATION_STATUSES else None
        repo.apply(row, SetStatus(status=target, actual_processing_days=days), uow.now)
        repo.flush_status_change(row)

        metadata: Dict[str, Any] = {"from": current.value, "to": target.value, "parcel_id": row.parcel_id}
        if days is not None:
            metadata["actual_processing_days"] = days
        if notes:
            metadata["notes"] = notes

        if target == ApplicationStatus.APPROVED:
            certificate = self.issuer.issue(application_from_model(row), reviewer, uow=uow)
            self.parcels.mark_registered(uow, row.parcel_id)
            metadata["certificate_number"] = certificate.certificate_number

        uow.record(
            AuditAction.APPLICATION_STATUS_CHANGED,
            f"Application {application_id} moved from {current.value} to {target.value}",
            actor_id=reviewer,
            resource_type="application",
            resource_id=row.id,
            metadata=metadata,
        )
        logger.info(f"Application {application_id}: {current.value} -> {target.value}")
        return application_from_model(row)

    def cancel(self, application_id: int, actor: Optional[str] = None, *, uow: Optional[UnitOfWork] = None) -> Application:
        return self.transition(application_id, ApplicationStatus.CANCELLED, actor, None, uow=uow)

    @transactional
    def record_payment(
        self,
        uow: UnitOfWork,
        application_id: int,
        payment_status: Any,
        actor: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Application:
        target = _parse_payment_status(payment_status)
        repo = ApplicationRepository(uow.session)
        row = self._load_for_update(repo, application_id)
        current = PaymentStatus(row.payment_status)

        if target == PaymentStatus.PAID and row.status in (
            ApplicationStatus.CANCELLED.value,
            ApplicationStatus.REJECTED.value,
        ):
            raise InvalidTransitionError(
                message=f"Cannot take payment for a {row.status} application",
                context={"application_id": application_id, "status": row.status},
            )
        ensure_payment_transition(current, target)

        paid_at = uow.now if target == PaymentStatus.PAID else None
        repo.apply(row, SetPayment(payment_status=target, reference=reference, paid_at=paid_at), uow.now)
        uow.session.flush()
        uow.record(
            PAYMENT_AUDIT_ACTIONS[target],
            f"Payment for application {application_id} moved from {current.value} to {target.value}",
            actor_id=actor,
            resource_type="application",
            resource_id=row.id,
            metadata={
                "from": current.value,
                "to": target.value,
                "amount": str(row.fee_amount),
                "currency": row.currency,
                "reference": reference,
            },
        )
        logger.info(f"Application {application_id} payment: {current.value} -> {target.value}")
        return application_from_model(row)

    def get(self, application_id: int) -> Application:
        def _work(session):
            row = ApplicationRepository(session).get(application_id)
            if row is None:
                raise ApplicationNotFoundError(
                    message=f"Application {application_id} not found",
                    context={"application_id": application_id},
                )
            return application_from_model(row)

        return self.coordinator.read(_work)

    def list(
        self,
        *,
        applicant_id: Optional[str] = None,
        parcel_id: Optional[int] = None,
        status: Any = None,
        application_type: Any = None,
        payment_status: Any = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Application]:
        filters = {
            "applicant_id": applicant_id,
            "parcel_id": parcel_id,
            "status": _parse_status(status) if status is not None else None,
            "application_type": parse_application_type(application_type) if application_type is not None else None,
            "payment_status": _parse_payment_status(payment_status) if payment_status is not None else None,
        }
        return self.coordinator.read(
            lambda session: [
                application_from_model(r)
                for r in ApplicationRepository(session).list(limit=limit, offset=offset, **filters)
            ]
        )

    def stats(self) -> Dict[str, Any]:
        return self.coordinator.read(lambda session: ApplicationRepository(session).stats())

    @staticmethod
    def _load_for_update(repo: ApplicationRepository, application_id: int) -> ApplicationModel:
        row = repo.get(application_id, for_update=True)
        if row is None:
            raise ApplicationNotFoundError(
                message=f"Application {application_id} not found",
                context={"application_id": application_id},
            )
        return row

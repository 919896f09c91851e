"""
Session-scoped repositories for parcels, applications and certificates.

Repositories never commit: they run inside the caller's unit of work and return
detached domain dataclasses. Mutations go through the closed commands in
``landregistry.domain.commands``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, desc, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from landregistry.core.errors import (
    DuplicateCertificateError,
    DuplicateParcelNumberError,
    DuplicatePendingApplicationError,
    ParcelAlreadyRegisteredError,
)
from landregistry.domain.application import Application
from landregistry.domain.certificate import Certificate
from landregistry.domain.commands import (
    AppendReviewNotes,
    ApplicationCommand,
    MarkRegistered,
    ParcelCommand,
    Revoke,
    CertificateCommand,
    SetPayment,
    SetReview,
    SetStatus,
)
from landregistry.domain.enums import (
    ACTIVE_APPLICATION_STATUSES,
    ApplicationStatus,
    ApplicationType,
    CertificateStatus,
    LandType,
    ParcelStatus,
    PaymentStatus,
)
from landregistry.domain.parcel import Parcel
from landregistry.infrastructure.stores.models import (
    ApplicationModel,
    CertificateModel,
    ParcelModel,
)


def new_public_id() -> str:
    return uuid.uuid4().hex


def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _is_unique_violation(exc: IntegrityError, column: str) -> bool:
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(getattr(orig, "diag", None), "sqlstate", None)
    message = str(orig).lower()
    # 23505 is unique_violation; SQLite reports "UNIQUE constraint failed: table.column"
    is_unique = code == "23505" or "unique constraint failed" in message
    return is_unique and column in message


def _dec_or_zero(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


# ---- model -> domain ----

def parcel_from_model(row: ParcelModel) -> Parcel:
    return Parcel(
        id=row.id,
        parcel_uuid=row.parcel_uuid,
        parcel_number=row.parcel_number,
        location=row.location,
        area=Decimal(str(row.area)),
        land_type=LandType(row.land_type),
        status=ParcelStatus(row.status),
        market_value=Decimal(str(row.market_value)) if row.market_value is not None else None,
        district=row.district,
        region=row.region,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def application_from_model(row: ApplicationModel) -> Application:
    return Application(
        id=row.id,
        application_uuid=row.application_uuid,
        applicant_id=row.applicant_id,
        parcel_id=row.parcel_id,
        application_type=ApplicationType(row.application_type),
        status=ApplicationStatus(row.status),
        fee_amount=Decimal(str(row.fee_amount)),
        currency=row.currency,
        payment_status=PaymentStatus(row.payment_status),
        payment_reference=row.payment_reference,
        paid_at=row.paid_at,
        priority_level=row.priority_level,
        notes=row.notes,
        review_notes=row.review_notes,
        reviewed_by=row.reviewed_by,
        reviewed_at=row.reviewed_at,
        estimated_processing_days=row.estimated_processing_days,
        actual_processing_days=row.actual_processing_days,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def certificate_from_model(row: CertificateModel) -> Certificate:
    return Certificate(
        id=row.id,
        certificate_uuid=row.certificate_uuid,
        certificate_number=row.certificate_number,
        parcel_id=row.parcel_id,
        application_id=row.application_id,
        issued_by=row.issued_by,
        issued_at=row.issued_at,
        status=CertificateStatus(row.status),
        certificate_hash=row.certificate_hash,
        verification_code=row.verification_code,
        expires_at=row.expires_at,
        revocation_reason=row.revocation_reason,
        revoked_by=row.revoked_by,
        revoked_at=row.revoked_at,
        metadata=row.get_metadata(),
    )


class ParcelRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(
        self,
        *,
        parcel_number: str,
        location: str,
        area: Decimal,
        land_type: LandType,
        now: datetime,
        market_value: Optional[Decimal] = None,
        district: Optional[str] = None,
        region: Optional[str] = None,
    ) -> ParcelModel:
        row = ParcelModel(
            parcel_uuid=new_public_id(),
            parcel_number=parcel_number,
            location=location,
            area=area,
            land_type=land_type.value,
            status=ParcelStatus.AVAILABLE.value,
            market_value=market_value,
            district=district,
            region=region,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as e:
            if not _is_unique_violation(e, "parcel_number"):
                raise
            raise DuplicateParcelNumberError(
                message=f"Parcel number {parcel_number} already exists",
                context={"parcel_number": parcel_number},
            ) from e
        return row

    def get(self, parcel_id: int) -> Optional[ParcelModel]:
        return self.session.get(ParcelModel, parcel_id)

    def lock(self, parcel_id: int) -> Optional[ParcelModel]:
        """Load the parcel row holding a row lock until the transaction ends."""
        stmt = select(ParcelModel).where(ParcelModel.id == parcel_id).with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_number(self, parcel_number: str) -> Optional[ParcelModel]:
        return self.session.execute(
            select(ParcelModel).where(ParcelModel.parcel_number == parcel_number)
        ).scalar_one_or_none()

    def apply(self, row: ParcelModel, command: ParcelCommand, now: datetime) -> ParcelModel:
        if isinstance(command, MarkRegistered):
            row.status = ParcelStatus.REGISTERED.value
        else:
            raise TypeError(f"Unsupported parcel command: {command!r}")
        row.updated_at = now
        self.session.flush()
        return row

    def count_approved_applications(self, parcel_id: int) -> int:
        return int(
            self.session.execute(
                select(func.count(ApplicationModel.id)).where(
                    ApplicationModel.parcel_id == parcel_id,
                    ApplicationModel.status == ApplicationStatus.APPROVED.value,
                )
            ).scalar_one()
        )

    def search(
        self,
        *,
        parcel_number: Optional[str] = None,
        location: Optional[str] = None,
        land_type: Optional[LandType] = None,
        status: Optional[ParcelStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ParcelModel]:
        stmt = select(ParcelModel)
        if parcel_number:
            stmt = stmt.where(ParcelModel.parcel_number.ilike(_like(parcel_number), escape="\\"))
        if location:
            stmt = stmt.where(ParcelModel.location.ilike(_like(location), escape="\\"))
        if land_type is not None:
            stmt = stmt.where(ParcelModel.land_type == land_type.value)
        if status is not None:
            stmt = stmt.where(ParcelModel.status == status.value)
        stmt = stmt.order_by(desc(ParcelModel.created_at), desc(ParcelModel.id)).limit(limit).offset(offset)
        return list(self.session.execute(stmt).scalars())

    def stats(self) -> Dict[str, Any]:
        def _count(status: ParcelStatus):
            return func.count(case((ParcelModel.status == status.value, 1)))

        row = self.session.execute(
            select(
                func.count(ParcelModel.id),
                _count(ParcelStatus.AVAILABLE),
                _count(ParcelStatus.REGISTERED),
                _count(ParcelStatus.DISPUTED),
                _count(ParcelStatus.UNDER_REVIEW),
                func.sum(ParcelModel.area),
                func.avg(ParcelModel.area),
                func.count(func.distinct(ParcelModel.land_type)),
            )
        ).one()
        return {
            "total_parcels": int(row[0] or 0),
            "available_parcels": int(row[1] or 0),
            "registered_parcels": int(row[2] or 0),
            "disputed_parcels": int(row[3] or 0),
            "under_review_parcels": int(row[4] or 0),
            "total_area": _dec_or_zero(row[5]),
            "average_area": _dec_or_zero(row[6]).quantize(Decimal("0.0001")),
            "land_types_count": int(row[7] or 0),
        }


class ApplicationRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(
        self,
        *,
        applicant_id: str,
        parcel_id: int,
        application_type: ApplicationType,
        fee_amount: Decimal,
        currency: str,
        priority_level: int,
        estimated_processing_days: int,
        notes: Optional[str],
        now: datetime,
    ) -> ApplicationModel:
        row = ApplicationModel(
            application_uuid=new_public_id(),
            applicant_id=applicant_id,
            parcel_id=parcel_id,
            application_type=application_type.value,
            status=ApplicationStatus.PENDING.value,
            fee_amount=fee_amount,
            currency=currency,
            payment_status=PaymentStatus.PENDING.value,
            priority_level=priority_level,
            estimated_processing_days=estimated_processing_days,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as e:
            raise DuplicatePendingApplicationError(
                message="Applicant already has an open application for this parcel",
                context={"applicant_id": applicant_id, "parcel_id": parcel_id},
            ) from e
        return row

    def get(self, application_id: int, *, for_update: bool = False) -> Optional[ApplicationModel]:
        stmt = select(ApplicationModel).where(ApplicationModel.id == application_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def find_active(self, applicant_id: str, parcel_id: int) -> Optional[ApplicationModel]:
        return self.session.execute(
            select(ApplicationModel).where(
                ApplicationModel.applicant_id == applicant_id,
                ApplicationModel.parcel_id == parcel_id,
                ApplicationModel.status.in_([s.value for s in ACTIVE_APPLICATION_STATUSES]),
            )
        ).scalars().first()

    def apply(self, row: ApplicationModel, command: ApplicationCommand, now: datetime) -> ApplicationModel:
        if isinstance(command, SetStatus):
            row.status = command.status.value
            if command.actual_processing_days is not None:
                row.actual_processing_days = command.actual_processing_days
        elif isinstance(command, SetReview):
            row.reviewed_by = command.reviewed_by
            row.reviewed_at = command.reviewed_at
        elif isinstance(command, AppendReviewNotes):
            row.review_notes = f"{row.review_notes}\n{command.notes}" if row.review_notes else command.notes
        elif isinstance(command, SetPayment):
            row.payment_status = command.payment_status.value
            if command.reference is not None:
                row.payment_reference = command.reference
            if command.paid_at is not None:
                row.paid_at = command.paid_at
        else:
            raise TypeError(f"Unsupported application command: {command!r}")
        row.updated_at = now
        return row

    def flush_status_change(self, row: ApplicationModel) -> None:
        # row attributes are unreadable once a failed flush has rolled the session back
        status, parcel_id, application_id = row.status, row.parcel_id, row.id
        try:
            self.session.flush()
        except IntegrityError as e:
            if status == ApplicationStatus.APPROVED.value:
                raise ParcelAlreadyRegisteredError(
                    message=f"Parcel {parcel_id} already has an approved application",
                    context={"parcel_id": parcel_id, "application_id": application_id},
                ) from e
            raise

    def list(
        self,
        *,
        applicant_id: Optional[str] = None,
        parcel_id: Optional[int] = None,
        status: Optional[ApplicationStatus] = None,
        application_type: Optional[ApplicationType] = None,
        payment_status: Optional[PaymentStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ApplicationModel]:
        stmt = select(ApplicationModel)
        if applicant_id is not None:
            stmt = stmt.where(ApplicationModel.applicant_id == applicant_id)
        if parcel_id is not None:
            stmt = stmt.where(ApplicationModel.parcel_id == parcel_id)
        if status is not None:
            stmt = stmt.where(ApplicationModel.status == status.value)
        if application_type is not None:
            stmt = stmt.where(ApplicationModel.application_type == application_type.value)
        if payment_status is not None:
            stmt = stmt.where(ApplicationModel.payment_status == payment_status.value)
        stmt = stmt.order_by(desc(ApplicationModel.created_at), desc(ApplicationModel.id)).limit(limit).offset(offset)
        return list(self.session.execute(stmt).scalars())

    def stats(self) -> Dict[str, Any]:
        def _status(status: ApplicationStatus):
            return func.count(case((ApplicationModel.status == status.value, 1)))

        def _payment(status: PaymentStatus):
            return func.count(case((ApplicationModel.payment_status == status.value, 1)))

        row = self.session.execute(
            select(
                func.count(ApplicationModel.id),
                _status(ApplicationStatus.PENDING),
                _status(ApplicationStatus.UNDER_REVIEW),
                _status(ApplicationStatus.APPROVED),
                _status(ApplicationStatus.REJECTED),
                _status(ApplicationStatus.CANCELLED),
                _payment(PaymentStatus.PAID),
                _payment(PaymentStatus.PENDING),
                func.avg(ApplicationModel.fee_amount),
                func.sum(ApplicationModel.fee_amount),
            )
        ).one()
        return {
            "total_applications": int(row[0] or 0),
            "pending_applications": int(row[1] or 0),
            "under_review_applications": int(row[2] or 0),
            "approved_applications": int(row[3] or 0),
            "rejected_applications": int(row[4] or 0),
            "cancelled_applications": int(row[5] or 0),
            "paid_applications": int(row[6] or 0),
            "payment_pending": int(row[7] or 0),
            "average_fee": _dec_or_zero(row[8]).quantize(Decimal("0.01")),
            "total_fees": _dec_or_zero(row[9]).quantize(Decimal("0.01")),
        }


class CertificateRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(
        self,
        *,
        certificate_number: str,
        parcel_id: int,
        application_id: int,
        issued_by: str,
        issued_at: datetime,
        expires_at: Optional[datetime],
        certificate_hash: str,
        verification_code: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CertificateModel:
        row = CertificateModel(
            certificate_uuid=new_public_id(),
            certificate_number=certificate_number,
            parcel_id=parcel_id,
            application_id=application_id,
            issued_by=issued_by,
            issued_at=issued_at,
            expires_at=expires_at,
            status=CertificateStatus.ACTIVE.value,
            certificate_hash=certificate_hash,
            verification_code=verification_code,
            created_at=issued_at,
            updated_at=issued_at,
        )
        row.set_metadata(metadata or {})
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as e:
            raise DuplicateCertificateError(
                message=f"Certificate already exists for application {application_id}",
                context={"application_id": application_id, "certificate_number": certificate_number},
            ) from e
        return row

    def get(self, certificate_id: int, *, for_update: bool = False) -> Optional[CertificateModel]:
        stmt = select(CertificateModel).where(CertificateModel.id == certificate_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_number(self, certificate_number: str) -> Optional[CertificateModel]:
        return self.session.execute(
            select(CertificateModel).where(CertificateModel.certificate_number == certificate_number)
        ).scalar_one_or_none()

    def get_by_verification_code(self, code: str) -> Optional[CertificateModel]:
        return self.session.execute(
            select(CertificateModel).where(CertificateModel.verification_code == code)
        ).scalar_one_or_none()

    def get_by_application(self, application_id: int) -> Optional[CertificateModel]:
        return self.session.execute(
            select(CertificateModel).where(CertificateModel.application_id == application_id)
        ).scalar_one_or_none()

    def verification_code_exists(self, code: str) -> bool:
        return self.get_by_verification_code(code) is not None

    def apply(self, row: CertificateModel, command: CertificateCommand, now: datetime) -> CertificateModel:
        if isinstance(command, Revoke):
            row.status = CertificateStatus.REVOKED.value
            row.revoked_by = command.revoked_by
            row.revoked_at = command.revoked_at
            row.revocation_reason = command.reason
        else:
            raise TypeError(f"Unsupported certificate command: {command!r}")
        row.updated_at = now
        self.session.flush()
        return row

    def list_active_for_applicant(self, applicant_id: str, limit: int = 100) -> List[CertificateModel]:
        stmt = (
            select(CertificateModel)
            .join(ApplicationModel, CertificateModel.application_id == ApplicationModel.id)
            .where(
                ApplicationModel.applicant_id == applicant_id,
                CertificateModel.status == CertificateStatus.ACTIVE.value,
            )
            .order_by(desc(CertificateModel.issued_at))
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())

    def stats(self, now: datetime) -> Dict[str, Any]:
        def _status(status: CertificateStatus):
            return func.count(case((CertificateModel.status == status.value, 1)))

        def _since(days: int):
            return func.count(case((CertificateModel.issued_at >= now - timedelta(days=days), 1)))

        is_active = CertificateModel.status == CertificateStatus.ACTIVE.value
        # an active row past expires_at counts as expired
        lapsed = and_(CertificateModel.expires_at.is_not(None), CertificateModel.expires_at <= now)
        is_expired = or_(CertificateModel.status == CertificateStatus.EXPIRED.value, and_(is_active, lapsed))

        row = self.session.execute(
            select(
                func.count(CertificateModel.id),
                func.count(case((and_(is_active, ~lapsed), 1))),
                _status(CertificateStatus.REVOKED),
                func.count(case((is_expired, 1))),
                _since(30),
                _since(7),
            )
        ).one()
        return {
            "total_certificates": int(row[0] or 0),
            "active_certificates": int(row[1] or 0),
            "revoked_certificates": int(row[2] or 0),
            "expired_certificates": int(row[3] or 0),
            "certificates_last_30_days": int(row[4] or 0),
            "certificates_last_7_days": int(row[5] or 0),
        }

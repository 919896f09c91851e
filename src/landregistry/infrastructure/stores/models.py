from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from landregistry.core.errors import AuditWriteError


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetimes in, timezone-aware UTC datetimes out (SQLite drops tzinfo)."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _dump_json(data: Optional[Dict[str, Any]]) -> str:
    return json.dumps(data or {}, ensure_ascii=False, sort_keys=True, default=str)


def _load_json(raw: Optional[str]) -> Dict[str, Any]:
    try:
        data = json.loads(raw or "{}")
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class Base(DeclarativeBase):
    pass


class ParcelModel(Base):
    __tablename__ = "land_parcels"
    __table_args__ = (
        CheckConstraint("area > 0", name="ck_parcel_area_positive"),
        CheckConstraint("market_value IS NULL OR market_value >= 0", name="ck_parcel_market_value"),
        CheckConstraint(
            "land_type IN ('residential', 'commercial', 'agricultural', 'industrial')",
            name="ck_parcel_land_type",
        ),
        CheckConstraint(
            "status IN ('available', 'registered', 'disputed', 'under_review')",
            name="ck_parcel_status",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parcel_uuid: Mapped[str] = mapped_column(String(32), unique=True)
    parcel_number: Mapped[str] = mapped_column(String(50), unique=True, index=True)

    location: Mapped[str] = mapped_column(Text, default="")
    area: Mapped[Decimal] = mapped_column(Numeric(12, 4))
    land_type: Mapped[str] = mapped_column(String(32), index=True)
    status: Mapped[str] = mapped_column(String(32), default="available", index=True)
    market_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    district: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime)

    applications = relationship("ApplicationModel", back_populates="parcel")


class ApplicationModel(Base):
    __tablename__ = "land_applications"
    __table_args__ = (
        CheckConstraint("priority_level BETWEEN 1 AND 5", name="ck_application_priority"),
        CheckConstraint("fee_amount >= 0", name="ck_application_fee"),
        CheckConstraint(
            "(status IN ('pending', 'under_review') AND reviewed_by IS NULL AND reviewed_at IS NULL) OR "
            "(status IN ('approved', 'rejected') AND reviewed_by IS NOT NULL AND reviewed_at IS NOT NULL) OR "
            "(status = 'cancelled')",
            name="ck_application_review_data",
        ),
        # commit-time backstops for the row-lock protocol in unit_of_work
        Index(
            "uq_application_active_per_applicant",
            "applicant_id",
            "parcel_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'under_review')"),
            postgresql_where=text("status IN ('pending', 'under_review')"),
        ),
        Index(
            "uq_application_approved_per_parcel",
            "parcel_id",
            unique=True,
            sqlite_where=text("status = 'approved'"),
            postgresql_where=text("status = 'approved'"),
        ),
        Index("ix_applications_parcel_status", "parcel_id", "status"),
        Index("ix_applications_applicant_status", "applicant_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_uuid: Mapped[str] = mapped_column(String(32), unique=True)

    applicant_id: Mapped[str] = mapped_column(String(64), index=True)
    parcel_id: Mapped[int] = mapped_column(Integer, ForeignKey("land_parcels.id", ondelete="RESTRICT"), index=True)
    application_type: Mapped[str] = mapped_column(String(32), index=True)
    status: Mapped[str] = mapped_column(String(32), default="pending", index=True)

    fee_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="XAF")
    payment_status: Mapped[str] = mapped_column(String(32), default="pending", index=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    priority_level: Mapped[int] = mapped_column(Integer, default=1)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    estimated_processing_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    actual_processing_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime)

    parcel = relationship("ParcelModel", back_populates="applications")
    certificate = relationship("CertificateModel", back_populates="application", uselist=False)


class CertificateModel(Base):
    __tablename__ = "certificates"
    __table_args__ = (
        CheckConstraint("expires_at IS NULL OR expires_at > issued_at", name="ck_certificate_expiry"),
        CheckConstraint(
            "(status = 'revoked' AND revoked_by IS NOT NULL AND revoked_at IS NOT NULL) OR "
            "(status != 'revoked' AND revoked_by IS NULL AND revoked_at IS NULL)",
            name="ck_certificate_revocation",
        ),
        Index("ix_certificates_parcel_status", "parcel_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    certificate_uuid: Mapped[str] = mapped_column(String(32), unique=True)
    certificate_number: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    parcel_id: Mapped[int] = mapped_column(Integer, ForeignKey("land_parcels.id", ondelete="RESTRICT"), index=True)
    application_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("land_applications.id", ondelete="RESTRICT"), unique=True
    )

    issued_by: Mapped[str] = mapped_column(String(64))
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="active", index=True)

    certificate_hash: Mapped[str] = mapped_column(String(64))
    verification_code: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    revocation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    revoked_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    metadata_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime)

    application = relationship("ApplicationModel", back_populates="certificate")

    def set_metadata(self, data: Dict[str, Any]) -> None:
        self.metadata_json = _dump_json(data)

    def get_metadata(self) -> Dict[str, Any]:
        return _load_json(self.metadata_json)


class AuditEventModel(Base):
    """Append-only audit trail. Rows are never updated or deleted."""

    __tablename__ = "audit_events"
    __table_args__ = (
        CheckConstraint(
            "severity IN ('debug', 'info', 'warn', 'error', 'critical')",
            name="ck_audit_severity",
        ),
        Index("ix_audit_events_resource", "resource_type", "resource_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_uuid: Mapped[str] = mapped_column(String(32), unique=True)

    actor_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(64), index=True)
    resource_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    resource_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    detail: Mapped[str] = mapped_column(Text, default="")
    metadata_json: Mapped[str] = mapped_column(Text, default="{}")
    severity: Mapped[str] = mapped_column(String(16), default="info")

    ts: Mapped[datetime] = mapped_column(UTCDateTime, index=True)

    def set_metadata(self, data: Dict[str, Any]) -> None:
        self.metadata_json = _dump_json(data)

    def get_metadata(self) -> Dict[str, Any]:
        return _load_json(self.metadata_json)


@event.listens_for(AuditEventModel, "before_update")
def _refuse_audit_update(mapper, connection, target):
    raise AuditWriteError(message="Audit events are write-once", context={"event_uuid": target.event_uuid})


@event.listens_for(AuditEventModel, "before_delete")
def _refuse_audit_delete(mapper, connection, target):
    raise AuditWriteError(message="Audit events cannot be deleted", context={"event_uuid": target.event_uuid})

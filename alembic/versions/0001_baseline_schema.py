"""baseline schema

Revision ID: 0001_baseline_schema
Revises: None
Create Date: 2026-10-16

Creates the land registry tables: land_parcels, land_applications, certificates
and audit_events, with their check constraints and the partial unique indexes
that back the one-approval-per-parcel and one-open-application-per-applicant rules.

Online upgrades skip tables that already exist (local databases may have been
bootstrapped with ``Base.metadata.create_all()``).
"""

from __future__ import annotations

from alembic import context, op
import sqlalchemy as sa


revision = "0001_baseline_schema"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_STATUSES = "status IN ('pending', 'under_review')"
APPROVED_STATUS = "status = 'approved'"


def _is_offline() -> bool:
    try:
        return bool(context.is_offline_mode())
    except Exception:
        return False


def _has_table(name: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(name)


def _should_create(name: str) -> bool:
    return _is_offline() or not _has_table(name)


def upgrade() -> None:
    if _should_create("land_parcels"):
        op.create_table(
            "land_parcels",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("parcel_uuid", sa.String(length=32), nullable=False, unique=True),
            sa.Column("parcel_number", sa.String(length=50), nullable=False, unique=True),
            sa.Column("location", sa.Text(), server_default="", nullable=False),
            sa.Column("area", sa.Numeric(12, 4), nullable=False),
            sa.Column("land_type", sa.String(length=32), nullable=False),
            sa.Column("status", sa.String(length=32), server_default="available", nullable=False),
            sa.Column("market_value", sa.Numeric(15, 2), nullable=True),
            sa.Column("district", sa.String(length=255), nullable=True),
            sa.Column("region", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint("area > 0", name="ck_parcel_area_positive"),
            sa.CheckConstraint("market_value IS NULL OR market_value >= 0", name="ck_parcel_market_value"),
            sa.CheckConstraint(
                "land_type IN ('residential', 'commercial', 'agricultural', 'industrial')",
                name="ck_parcel_land_type",
            ),
            sa.CheckConstraint(
                "status IN ('available', 'registered', 'disputed', 'under_review')",
                name="ck_parcel_status",
            ),
        )
        op.create_index("ix_land_parcels_land_type", "land_parcels", ["land_type"])
        op.create_index("ix_land_parcels_status", "land_parcels", ["status"])
        op.create_index("ix_land_parcels_created_at", "land_parcels", ["created_at"])

    if _should_create("land_applications"):
        op.create_table(
            "land_applications",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("application_uuid", sa.String(length=32), nullable=False, unique=True),
            sa.Column("applicant_id", sa.String(length=64), nullable=False),
            sa.Column(
                "parcel_id",
                sa.Integer(),
                sa.ForeignKey("land_parcels.id", ondelete="RESTRICT"),
                nullable=False,
            ),
            sa.Column("application_type", sa.String(length=32), nullable=False),
            sa.Column("status", sa.String(length=32), server_default="pending", nullable=False),
            sa.Column("fee_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("currency", sa.String(length=3), server_default="XAF", nullable=False),
            sa.Column("payment_status", sa.String(length=32), server_default="pending", nullable=False),
            sa.Column("payment_reference", sa.String(length=255), nullable=True),
            sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("priority_level", sa.Integer(), server_default="1", nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("review_notes", sa.Text(), nullable=True),
            sa.Column("reviewed_by", sa.String(length=64), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("estimated_processing_days", sa.Integer(), nullable=True),
            sa.Column("actual_processing_days", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint("priority_level BETWEEN 1 AND 5", name="ck_application_priority"),
            sa.CheckConstraint("fee_amount >= 0", name="ck_application_fee"),
            sa.CheckConstraint(
                "(status IN ('pending', 'under_review') AND reviewed_by IS NULL AND reviewed_at IS NULL) OR "
                "(status IN ('approved', 'rejected') AND reviewed_by IS NOT NULL AND reviewed_at IS NOT NULL) OR "
                "(status = 'cancelled')",
                name="ck_application_review_data",
            ),
        )
        op.create_index("ix_land_applications_applicant_id", "land_applications", ["applicant_id"])
        op.create_index("ix_land_applications_parcel_id", "land_applications", ["parcel_id"])
        op.create_index("ix_land_applications_application_type", "land_applications", ["application_type"])
        op.create_index("ix_land_applications_status", "land_applications", ["status"])
        op.create_index("ix_land_applications_payment_status", "land_applications", ["payment_status"])
        op.create_index("ix_land_applications_created_at", "land_applications", ["created_at"])
        op.create_index("ix_applications_parcel_status", "land_applications", ["parcel_id", "status"])
        op.create_index("ix_applications_applicant_status", "land_applications", ["applicant_id", "status"])
        op.create_index(
            "uq_application_active_per_applicant",
            "land_applications",
            ["applicant_id", "parcel_id"],
            unique=True,
            sqlite_where=sa.text(ACTIVE_STATUSES),
            postgresql_where=sa.text(ACTIVE_STATUSES),
        )
        op.create_index(
            "uq_application_approved_per_parcel",
            "land_applications",
            ["parcel_id"],
            unique=True,
            sqlite_where=sa.text(APPROVED_STATUS),
            postgresql_where=sa.text(APPROVED_STATUS),
        )

    if _should_create("certificates"):
        op.create_table(
            "certificates",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("certificate_uuid", sa.String(length=32), nullable=False, unique=True),
            sa.Column("certificate_number", sa.String(length=100), nullable=False, unique=True),
            sa.Column(
                "parcel_id",
                sa.Integer(),
                sa.ForeignKey("land_parcels.id", ondelete="RESTRICT"),
                nullable=False,
            ),
            sa.Column(
                "application_id",
                sa.Integer(),
                sa.ForeignKey("land_applications.id", ondelete="RESTRICT"),
                nullable=False,
                unique=True,
            ),
            sa.Column("issued_by", sa.String(length=64), nullable=False),
            sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("status", sa.String(length=32), server_default="active", nullable=False),
            sa.Column("certificate_hash", sa.String(length=64), nullable=False),
            sa.Column("verification_code", sa.String(length=64), nullable=False, unique=True),
            sa.Column("revocation_reason", sa.Text(), nullable=True),
            sa.Column("revoked_by", sa.String(length=64), nullable=True),
            sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("metadata_json", sa.Text(), server_default="{}", nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint("expires_at IS NULL OR expires_at > issued_at", name="ck_certificate_expiry"),
            sa.CheckConstraint(
                "(status = 'revoked' AND revoked_by IS NOT NULL AND revoked_at IS NOT NULL) OR "
                "(status != 'revoked' AND revoked_by IS NULL AND revoked_at IS NULL)",
                name="ck_certificate_revocation",
            ),
        )
        op.create_index("ix_certificates_parcel_id", "certificates", ["parcel_id"])
        op.create_index("ix_certificates_issued_at", "certificates", ["issued_at"])
        op.create_index("ix_certificates_status", "certificates", ["status"])
        op.create_index("ix_certificates_parcel_status", "certificates", ["parcel_id", "status"])

    if _should_create("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("event_uuid", sa.String(length=32), nullable=False, unique=True),
            sa.Column("actor_id", sa.String(length=64), nullable=True),
            sa.Column("action", sa.String(length=64), nullable=False),
            sa.Column("resource_type", sa.String(length=32), nullable=True),
            sa.Column("resource_id", sa.Integer(), nullable=True),
            sa.Column("detail", sa.Text(), server_default="", nullable=False),
            sa.Column("metadata_json", sa.Text(), server_default="{}", nullable=False),
            sa.Column("severity", sa.String(length=16), server_default="info", nullable=False),
            sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint(
                "severity IN ('debug', 'info', 'warn', 'error', 'critical')",
                name="ck_audit_severity",
            ),
        )
        op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"])
        op.create_index("ix_audit_events_action", "audit_events", ["action"])
        op.create_index("ix_audit_events_ts", "audit_events", ["ts"])
        op.create_index("ix_audit_events_resource", "audit_events", ["resource_type", "resource_id"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("certificates")
    op.drop_table("land_applications")
    op.drop_table("land_parcels")

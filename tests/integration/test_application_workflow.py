from __future__ import annotations

from decimal import Decimal

import pytest

from landregistry.application.workflows import certificate_issuer
from landregistry.core.errors import (
    ApplicationNotFoundError,
    AuditWriteError,
    DuplicatePendingApplicationError,
    InvalidInputError,
    InvalidTransitionError,
    ParcelAlreadyRegisteredError,
    ParcelNotFoundError,
    ReviewerRequiredError,
    StorageError,
)
from landregistry.domain.enums import (
    ApplicationStatus,
    AuditAction,
    CertificateStatus,
    ParcelStatus,
    PaymentStatus,
)


def test_submit_computes_fee_and_starts_pending(engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "registration", "first claim")

    assert app.fee_amount == Decimal("52500")
    assert app.currency == "XAF"
    assert app.status == ApplicationStatus.PENDING
    assert app.payment_status == PaymentStatus.PENDING
    assert app.priority_level == 1
    assert app.estimated_processing_days == 30
    assert app.reviewed_by is None and app.reviewed_at is None
    assert len(app.application_uuid) == 32

    stored = engine.get_application(app.id)
    assert stored.fee_amount == Decimal("52500")
    assert stored.notes == "first claim"


def test_submit_with_priority(engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "transfer", priority=3)
    # 52500 * 1.2 * 2.0
    assert app.fee_amount == Decimal("126000")
    assert app.estimated_processing_days == 7


def test_submit_unknown_parcel(engine):
    with pytest.raises(ParcelNotFoundError):
        engine.submit_application("applicant-1", 999, "registration")


def test_submit_rejects_bad_input(engine, parcel):
    with pytest.raises(InvalidInputError):
        engine.submit_application("applicant-1", parcel.id, "lease")
    with pytest.raises(InvalidInputError):
        engine.submit_application("applicant-1", parcel.id, "registration", priority=9)
    with pytest.raises(InvalidInputError):
        engine.submit_application("", parcel.id, "registration")
    assert engine.list_applications() == []


def test_duplicate_open_application_is_a_conflict(engine, parcel):
    engine.submit_application("applicant-1", parcel.id, "registration")

    with pytest.raises(DuplicatePendingApplicationError):
        engine.submit_application("applicant-1", parcel.id, "transfer")

    # other applicants may still apply for the same parcel
    other = engine.submit_application("applicant-2", parcel.id, "registration")
    assert other.status == ApplicationStatus.PENDING
    assert len(engine.list_applications(parcel_id=parcel.id)) == 2


def test_duplicate_check_covers_under_review(engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    engine.transition_application(app.id, "under_review", "reviewer-1")

    with pytest.raises(DuplicatePendingApplicationError):
        engine.submit_application("applicant-1", parcel.id, "registration")


def test_resubmission_allowed_after_terminal_state(engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    engine.transition_application(app.id, "rejected", "reviewer-1", "missing survey plan")

    again = engine.submit_application("applicant-1", parcel.id, "registration")
    assert again.id != app.id
    assert again.status == ApplicationStatus.PENDING


def test_approval_registers_parcel_and_issues_certificate(engine, parcel, clock):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    clock.advance(days=3, hours=20)

    approved = engine.transition_application(app.id, "approved", "reviewer-1", "documents verified")

    assert approved.status == ApplicationStatus.APPROVED
    assert approved.reviewed_by == "reviewer-1"
    assert approved.reviewed_at == clock()
    assert approved.actual_processing_days == 3
    assert approved.review_notes == "documents verified"

    assert engine.get_parcel(parcel.id).status == ParcelStatus.REGISTERED

    cert = engine.get_certificate_for_application(app.id)
    assert cert is not None
    assert cert.status == CertificateStatus.ACTIVE
    assert cert.parcel_id == parcel.id
    assert cert.issued_by == "reviewer-1"
    assert cert.issued_at == clock()
    assert cert.expires_at.year == clock().year + 99
    assert cert.certificate_number == f"CERT-{clock():%Y%m%d%H%M%S%f}-{parcel.id}-{app.id}"
    assert cert.verification_code != cert.certificate_number
    assert len(cert.verification_code) == 32
    assert cert.certificate_hash == cert.expected_hash()


def test_second_approval_on_same_parcel_is_a_conflict(engine, parcel):
    first = engine.submit_application("applicant-1", parcel.id, "registration")
    second = engine.submit_application("applicant-2", parcel.id, "registration")
    engine.transition_application(first.id, "approved", "reviewer-1")

    with pytest.raises(ParcelAlreadyRegisteredError):
        engine.transition_application(second.id, "approved", "reviewer-2")

    # rolled back: still pending, no review data, no certificate
    reloaded = engine.get_application(second.id)
    assert reloaded.status == ApplicationStatus.PENDING
    assert reloaded.reviewed_by is None
    assert engine.get_certificate_for_application(second.id) is None
    assert engine.get_certificate_stats()["total_certificates"] == 1


def test_review_step_is_optional(engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    reviewing = engine.transition_application(app.id, "under_review", "reviewer-1", "checking boundaries")
    assert reviewing.status == ApplicationStatus.UNDER_REVIEW
    # review data only lands with approved/rejected
    assert reviewing.reviewed_by is None
    assert reviewing.actual_processing_days is None

    done = engine.transition_application(app.id, "approved", "reviewer-2", "boundaries confirmed")
    assert done.reviewed_by == "reviewer-2"
    assert done.review_notes == "checking boundaries\nboundaries confirmed"


@pytest.mark.parametrize("terminal", ["approved", "rejected", "cancelled"])
def test_terminal_applications_cannot_move(engine, parcel, terminal):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    engine.transition_application(app.id, terminal, "reviewer-1")

    for target in ("pending", "under_review", "approved", "rejected", "cancelled"):
        with pytest.raises(InvalidTransitionError):
            engine.transition_application(app.id, target, "reviewer-1")

    assert engine.get_application(app.id).status == ApplicationStatus(terminal)


def test_rejected_cannot_be_approved(engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    engine.transition_application(app.id, "rejected", "reviewer-1")

    with pytest.raises(InvalidTransitionError):
        engine.transition_application(app.id, "approved", "reviewer-1")
    assert engine.get_parcel(parcel.id).status == ParcelStatus.AVAILABLE


def test_under_review_cannot_return_to_pending(engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    engine.transition_application(app.id, "under_review", "reviewer-1")
    with pytest.raises(InvalidTransitionError):
        engine.transition_application(app.id, "pending", "reviewer-1")


@pytest.mark.parametrize("target", ["approved", "rejected"])
def test_reviewer_required(engine, parcel, target):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    with pytest.raises(ReviewerRequiredError):
        engine.transition_application(app.id, target, None)
    assert engine.get_application(app.id).status == ApplicationStatus.PENDING


def test_unknown_status_is_invalid_input(engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    with pytest.raises(InvalidInputError):
        engine.transition_application(app.id, "archived", "reviewer-1")


def test_transition_missing_application(engine):
    with pytest.raises(ApplicationNotFoundError):
        engine.transition_application(404, "approved", "reviewer-1")
    with pytest.raises(ApplicationNotFoundError):
        engine.get_application(404)


def test_cancel(engine, parcel, clock):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    clock.advance(days=2)

    cancelled = engine.cancel_application(app.id, "applicant-1")

    assert cancelled.status == ApplicationStatus.CANCELLED
    assert cancelled.actual_processing_days == 2
    assert cancelled.reviewed_by is None
    assert engine.get_parcel(parcel.id).status == ParcelStatus.AVAILABLE
    with pytest.raises(InvalidTransitionError):
        engine.cancel_application(app.id, "applicant-1")


def test_cancel_from_under_review(engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    engine.transition_application(app.id, "under_review", "reviewer-1")
    assert engine.cancel_application(app.id).status == ApplicationStatus.CANCELLED


def test_fee_is_fixed_at_submission(engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    approved = engine.transition_application(app.id, "approved", "reviewer-1")
    assert approved.fee_amount == app.fee_amount


def test_list_filters(engine, parcel):
    other = engine.create_parcel("LP-2025-002", "Akwa, Douala", "1", "commercial")
    a = engine.submit_application("applicant-1", parcel.id, "registration")
    engine.submit_application("applicant-1", other.id, "transfer")
    engine.submit_application("applicant-2", parcel.id, "registration")
    engine.transition_application(a.id, "under_review", "reviewer-1")

    assert len(engine.list_applications(applicant_id="applicant-1")) == 2
    assert [x.id for x in engine.list_applications(status="under_review")] == [a.id]
    assert len(engine.list_applications(application_type="transfer")) == 1
    assert len(engine.list_applications(limit=1)) == 1


def test_application_stats(engine, parcel):
    other = engine.create_parcel("LP-2025-002", "Akwa, Douala", "1", "commercial")
    a = engine.submit_application("applicant-1", parcel.id, "registration")
    b = engine.submit_application("applicant-2", other.id, "registration")
    engine.submit_application("applicant-3", other.id, "mutation")
    engine.transition_application(a.id, "approved", "reviewer-1")
    engine.transition_application(b.id, "rejected", "reviewer-1")
    engine.record_payment(a.id, "paid", "cashier-1", "RCPT-1")

    stats = engine.get_application_stats()
    assert stats["total_applications"] == 3
    assert stats["approved_applications"] == 1
    assert stats["rejected_applications"] == 1
    assert stats["pending_applications"] == 1
    assert stats["paid_applications"] == 1
    assert stats["payment_pending"] == 2
    # 52500 + 52000 + (50000 + 2000) * 0.8
    assert stats["total_fees"] == Decimal("146100.00")


def _assert_approval_rolled_back(engine, app, parcel, events_before):
    reloaded = engine.get_application(app.id)
    assert reloaded.status == ApplicationStatus.PENDING
    assert reloaded.reviewed_by is None and reloaded.reviewed_at is None
    assert reloaded.review_notes is None
    assert reloaded.actual_processing_days is None
    assert engine.get_parcel(parcel.id).status == ParcelStatus.AVAILABLE
    assert engine.get_certificate_for_application(app.id) is None
    assert len(engine.list_audit_events()) == events_before


def test_certificate_failure_rolls_back_the_approval(engine, parcel, monkeypatch):
    other = engine.create_parcel("LP-2025-002", "Akwa, Douala", "1", "commercial")
    first = engine.submit_application("applicant-2", other.id, "registration")
    engine.transition_application(first.id, "approved", "reviewer-1")
    taken = engine.get_certificate_for_application(first.id).verification_code

    app = engine.submit_application("applicant-1", parcel.id, "registration")
    events_before = len(engine.list_audit_events())
    # every generated code collides with the existing certificate
    monkeypatch.setattr(certificate_issuer.secrets, "token_hex", lambda nbytes: taken)

    with pytest.raises(StorageError):
        engine.transition_application(app.id, "approved", "reviewer-1", "documents verified")

    _assert_approval_rolled_back(engine, app, parcel, events_before)
    assert engine.get_certificate_stats()["total_certificates"] == 1


def test_audit_failure_during_approval_rolls_back(engine, parcel, monkeypatch):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    events_before = len(engine.list_audit_events())
    record = engine.recorder.record

    def _failing_record(session, event):
        if event.action == AuditAction.CERTIFICATE_ISSUED:
            raise AuditWriteError(message="audit store unavailable")
        return record(session, event)

    monkeypatch.setattr(engine.recorder, "record", _failing_record)

    with pytest.raises(AuditWriteError):
        engine.transition_application(app.id, "approved", "reviewer-1", "documents verified")

    _assert_approval_rolled_back(engine, app, parcel, events_before)

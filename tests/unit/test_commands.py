from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

import pytest

from landregistry.domain.commands import AppendReviewNotes, SetPayment, SetReview, SetStatus
from landregistry.domain.enums import ApplicationStatus, PaymentStatus
from landregistry.infrastructure.stores.models import ApplicationModel
from landregistry.infrastructure.stores.repositories import ApplicationRepository

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _row() -> ApplicationModel:
    return ApplicationModel(status="pending", payment_status="pending", review_notes=None)


def test_commands_are_immutable():
    cmd = SetStatus(status=ApplicationStatus.APPROVED)
    with pytest.raises(dataclasses.FrozenInstanceError):
        cmd.status = ApplicationStatus.REJECTED


def test_apply_each_command():
    # apply() only touches the row, the session is not needed
    repo = ApplicationRepository(session=None)
    row = _row()

    repo.apply(row, SetReview(reviewed_by="reviewer-1", reviewed_at=NOW), NOW)
    repo.apply(row, AppendReviewNotes(notes="boundaries checked"), NOW)
    repo.apply(row, AppendReviewNotes(notes="title clean"), NOW)
    repo.apply(row, SetStatus(status=ApplicationStatus.APPROVED, actual_processing_days=3), NOW)
    repo.apply(row, SetPayment(payment_status=PaymentStatus.PAID, reference="RCPT-1", paid_at=NOW), NOW)

    assert row.reviewed_by == "reviewer-1"
    assert row.review_notes == "boundaries checked\ntitle clean"
    assert row.status == "approved"
    assert row.actual_processing_days == 3
    assert row.payment_status == "paid"
    assert row.payment_reference == "RCPT-1"
    assert row.paid_at == NOW
    assert row.updated_at == NOW


def test_unknown_command_is_refused():
    repo = ApplicationRepository(session=None)
    with pytest.raises(TypeError):
        repo.apply(_row(), {"status": "approved"}, NOW)

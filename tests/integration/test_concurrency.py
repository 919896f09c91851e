from __future__ import annotations

import threading

import pytest

from landregistry.core.errors import (
    LandRegistryError,
    ParcelAlreadyRegisteredError,
    TransactionTimeoutError,
)
from landregistry.domain.commands import SetReview, SetStatus
from landregistry.domain.enums import ApplicationStatus, ParcelStatus
from landregistry.infrastructure.stores.repositories import ApplicationRepository


def test_concurrent_approvals_register_the_parcel_once(engine, parcel):
    apps = [engine.submit_application(f"applicant-{i}", parcel.id, "registration") for i in range(2)]
    barrier = threading.Barrier(len(apps))
    outcomes = {}

    def _approve(app_id: int) -> None:
        barrier.wait()
        try:
            engine.transition_application(app_id, "approved", f"reviewer-{app_id}")
            outcomes[app_id] = "approved"
        except LandRegistryError as e:
            outcomes[app_id] = e

    threads = [threading.Thread(target=_approve, args=(a.id,)) for a in apps]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(outcomes) == 2
    winners = [app_id for app_id, r in outcomes.items() if r == "approved"]
    losers = [r for r in outcomes.values() if r != "approved"]
    assert len(winners) == 1
    assert len(losers) == 1 and isinstance(losers[0], ParcelAlreadyRegisteredError)

    assert engine.get_parcel(parcel.id).status == ParcelStatus.REGISTERED
    assert engine.get_certificate_stats()["total_certificates"] == 1
    assert engine.get_certificate_for_application(winners[0]) is not None
    assert len(engine.list_applications(status="approved")) == 1
    assert len(engine.list_audit_events(action="CERTIFICATE_ISSUED")) == 1


def test_unique_index_backstops_a_second_approval(engine, parcel):
    first = engine.submit_application("applicant-1", parcel.id, "registration")
    second = engine.submit_application("applicant-2", parcel.id, "registration")

    def _approve_both_unchecked(uow):
        repo = ApplicationRepository(uow.session)
        for app_id in (first.id, second.id):
            row = repo.get(app_id)
            repo.apply(row, SetReview(reviewed_by="reviewer-1", reviewed_at=uow.now), uow.now)
            repo.apply(row, SetStatus(status=ApplicationStatus.APPROVED), uow.now)
            repo.flush_status_change(row)

    with pytest.raises(ParcelAlreadyRegisteredError) as excinfo:
        engine.coordinator.run_in_transaction(_approve_both_unchecked)

    assert excinfo.value.context == {"parcel_id": parcel.id, "application_id": second.id}
    assert engine.list_applications(status="approved") == []


def test_lock_timeout_rolls_back_and_is_reported(engine, make_engine, parcel):
    app = engine.submit_application("applicant-1", parcel.id, "registration")
    impatient = make_engine(lock_timeout_seconds=0.2)
    events_before = len(engine.list_audit_events())

    blocker = engine.provider.engine.connect()
    try:
        # opening a transaction takes the database write lock
        blocker.exec_driver_sql("SELECT 1")
        with pytest.raises(TransactionTimeoutError) as excinfo:
            impatient.transition_application(app.id, "approved", "reviewer-1")
    finally:
        blocker.rollback()
        blocker.close()

    assert excinfo.value.code == "TRANSACTION_TIMEOUT"
    assert engine.get_application(app.id).status == ApplicationStatus.PENDING
    assert engine.get_parcel(parcel.id).status == ParcelStatus.AVAILABLE
    assert engine.get_certificate_for_application(app.id) is None
    assert len(engine.list_audit_events()) == events_before

    # once the lock is released the same call goes through
    approved = impatient.transition_application(app.id, "approved", "reviewer-1")
    assert approved.status == ApplicationStatus.APPROVED

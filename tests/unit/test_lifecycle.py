from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from landregistry.core.errors import InvalidTransitionError
from landregistry.domain.enums import ApplicationStatus as S
from landregistry.domain.enums import PaymentStatus as P
from landregistry.domain.lifecycle import (
    APPLICATION_TRANSITIONS,
    can_transition,
    elapsed_processing_days,
    ensure_payment_transition,
    ensure_transition,
)


class TestApplicationTransitions:
    @pytest.mark.parametrize(
        "current, target",
        [
            (S.PENDING, S.UNDER_REVIEW),
            (S.PENDING, S.APPROVED),
            (S.PENDING, S.REJECTED),
            (S.PENDING, S.CANCELLED),
            (S.UNDER_REVIEW, S.APPROVED),
            (S.UNDER_REVIEW, S.REJECTED),
            (S.UNDER_REVIEW, S.CANCELLED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)
        ensure_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (S.UNDER_REVIEW, S.PENDING),
            (S.PENDING, S.PENDING),
            (S.UNDER_REVIEW, S.UNDER_REVIEW),
        ],
    )
    def test_refused(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidTransitionError):
            ensure_transition(current, target)

    @pytest.mark.parametrize("terminal", [S.APPROVED, S.REJECTED, S.CANCELLED])
    def test_terminal_states_never_move(self, terminal):
        assert APPLICATION_TRANSITIONS[terminal] == frozenset()
        for target in S:
            with pytest.raises(InvalidTransitionError, match="already"):
                ensure_transition(terminal, target)

    def test_every_status_has_an_entry(self):
        assert set(APPLICATION_TRANSITIONS) == set(S)


class TestPaymentTransitions:
    @pytest.mark.parametrize(
        "current, target",
        [(P.PENDING, P.PAID), (P.PENDING, P.FAILED), (P.FAILED, P.PENDING), (P.FAILED, P.PAID), (P.PAID, P.REFUNDED)],
    )
    def test_allowed(self, current, target):
        ensure_payment_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [(P.PAID, P.PENDING), (P.PAID, P.PAID), (P.REFUNDED, P.PAID), (P.PENDING, P.REFUNDED)],
    )
    def test_refused(self, current, target):
        with pytest.raises(InvalidTransitionError):
            ensure_payment_transition(current, target)


class TestElapsedProcessingDays:
    start = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_truncates_fractional_days(self):
        assert elapsed_processing_days(self.start, self.start + timedelta(days=1, hours=23)) == 1

    def test_same_instant_is_zero(self):
        assert elapsed_processing_days(self.start, self.start) == 0

    def test_crossing_midnight_is_not_a_day(self):
        assert elapsed_processing_days(self.start, self.start + timedelta(hours=13)) == 0

    def test_whole_days(self):
        assert elapsed_processing_days(self.start, self.start + timedelta(days=30)) == 30

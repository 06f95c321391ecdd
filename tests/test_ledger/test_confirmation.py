"""Tests for the ConfirmationTracker: rounds, pool errors and query retries."""

from __future__ import annotations

import pytest
from algosdk.error import AlgodHTTPError

from tallysticks.domain.exceptions import (
    ConfirmationTimeout,
    SubmissionRejected,
    TransientQueryError,
)
from tallysticks.ledger.confirmation import ConfirmationTracker

UNCONFIRMED = {"pool-error": "", "confirmed-round": 0}


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def tracker(fake_ledger, sleeps) -> ConfirmationTracker:
    return ConfirmationTracker(fake_ledger, timeout_rounds=10, query_attempts=3, sleep=sleeps)


class TestWait:
    def test_confirmed_on_first_query(self, fake_ledger, tracker) -> None:
        fake_ledger.pending["TX"] = {"pool-error": "", "confirmed-round": 101}
        pending = tracker.wait("TX")
        assert pending.confirmed_round == 101
        assert fake_ledger.round == 100

    def test_confirmed_after_some_rounds(self, fake_ledger, tracker) -> None:
        fake_ledger.pending_responses = [UNCONFIRMED, UNCONFIRMED]
        fake_ledger.pending["TX"] = {"pool-error": "", "confirmed-round": 103}
        pending = tracker.wait("TX")
        assert pending.is_confirmed
        assert fake_ledger.round == 102

    def test_pool_error(self, fake_ledger, tracker) -> None:
        fake_ledger.pending_responses = [{"pool-error": "overspend", "confirmed-round": 0}]
        with pytest.raises(SubmissionRejected, match="overspend") as exc_info:
            tracker.wait("TX")
        assert exc_info.value.tx_id == "TX"

    def test_timeout_after_round_budget(self, fake_ledger, tracker) -> None:
        fake_ledger.pending_responses = [UNCONFIRMED] * 10
        with pytest.raises(ConfirmationTimeout) as exc_info:
            tracker.wait("TX")
        assert exc_info.value.rounds == 10
        assert fake_ledger.round == 110
        assert fake_ledger.pending_responses == []

    def test_timeout_is_a_timeout_error(self, fake_ledger, tracker) -> None:
        fake_ledger.pending_responses = [UNCONFIRMED] * 10
        with pytest.raises(TimeoutError):
            tracker.wait("TX")


class TestQueryRetry:
    def test_transient_errors_are_retried(self, fake_ledger, tracker, sleeps) -> None:
        fake_ledger.pending_responses = [
            AlgodHTTPError("bad gateway", 502),
            ConnectionResetError("reset by peer"),
        ]
        fake_ledger.pending["TX"] = {"pool-error": "", "confirmed-round": 101}

        assert tracker.query_pending("TX").confirmed_round == 101
        assert sleeps.calls == [1, 2]

    def test_exhausted_retries(self, fake_ledger, tracker, sleeps) -> None:
        fake_ledger.pending_responses = [AlgodHTTPError("unavailable", 503)] * 3
        with pytest.raises(TransientQueryError, match="unavailable"):
            tracker.wait("TX")
        assert len(sleeps.calls) == 2

    def test_other_errors_propagate_unretried(self, fake_ledger, tracker, sleeps) -> None:
        fake_ledger.pending_responses = [KeyError("confirmed-round")]
        with pytest.raises(KeyError):
            tracker.query_pending("TX")
        assert sleeps.calls == []

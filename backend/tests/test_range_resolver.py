"""Tests for choosing the window of a sync run."""

from unittest.mock import MagicMock

import pytest

from walletsync.exceptions import LedgerError
from walletsync.services.range_resolver import RangeResolver, now_ms
from walletsync.services.types import JobStatus, JobType, SyncJob, TimeWindow

from conftest import DAY_MS, T0


NOW = T0 + 30 * DAY_MS
LOOKBACK = 90 * DAY_MS


def resumable_job(next_start_time):
    return SyncJob(
        id="1",
        job_type=JobType.DEPOSIT,
        window=TimeWindow(next_start_time - DAY_MS, next_start_time - 1),
        status=JobStatus.SUCCESS,
        next_start_time=next_start_time,
    )


@pytest.fixture
def ledger():
    ledger = MagicMock()
    ledger.last_resumable.return_value = None
    return ledger


@pytest.fixture
def resolver(ledger):
    return RangeResolver(ledger, LOOKBACK, clock=lambda: NOW)


def test_explicit_bounds_win_without_ledger_lookup(resolver, ledger):
    ledger.last_resumable.return_value = resumable_job(T0 + DAY_MS)

    window = resolver.resolve(JobType.DEPOSIT, T0 - 5 * DAY_MS, T0)

    assert window == TimeWindow(T0 - 5 * DAY_MS, T0)
    ledger.last_resumable.assert_not_called()


def test_resumes_from_last_job(resolver, ledger):
    ledger.last_resumable.return_value = resumable_job(T0 + DAY_MS + 1)

    window = resolver.resolve(JobType.WITHDRAW)

    assert window == TimeWindow(T0 + DAY_MS + 1, NOW)
    ledger.last_resumable.assert_called_once_with(JobType.WITHDRAW)


def test_first_run_uses_default_lookback(resolver):
    assert resolver.resolve(JobType.DEPOSIT) == TimeWindow(NOW - LOOKBACK, NOW)


def test_ledger_failure_degrades_to_default_lookback(resolver, ledger, caplog):
    ledger.last_resumable.side_effect = LedgerError("ledger unreachable")

    with caplog.at_level("WARNING", logger="walletsync.range_resolver"):
        window = resolver.resolve(JobType.DEPOSIT)

    assert window == TimeWindow(NOW - LOOKBACK, NOW)
    assert "degrading" in caplog.text


def test_only_explicit_end_caps_derived_window(resolver, ledger):
    ledger.last_resumable.return_value = resumable_job(T0)

    assert resolver.resolve(JobType.DEPOSIT, explicit_end=T0 + DAY_MS) == TimeWindow(
        T0, T0 + DAY_MS
    )


def test_only_explicit_start_runs_until_now(resolver, ledger):
    assert resolver.resolve(JobType.DEPOSIT, explicit_start=T0) == TimeWindow(T0, NOW)
    ledger.last_resumable.assert_not_called()


def test_explicit_start_in_the_future_is_rejected(resolver, ledger):
    with pytest.raises(ValueError, match="in the future"):
        resolver.resolve(JobType.DEPOSIT, explicit_start=NOW + 1)
    ledger.last_resumable.assert_not_called()


def test_resume_point_in_the_future_collapses_to_now(resolver, ledger):
    ledger.last_resumable.return_value = resumable_job(NOW + 10)

    assert resolver.resolve(JobType.DEPOSIT) == TimeWindow(NOW, NOW)


def test_now_ms_is_epoch_milliseconds():
    assert now_ms() > 1_600_000_000_000

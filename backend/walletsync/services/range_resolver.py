"""Decide which time window a sync run should cover."""

import time
from typing import Callable

from walletsync.exceptions import LedgerError
from walletsync.logging_config import get_logger
from walletsync.services.job_ledger import JobLedger
from walletsync.services.types import JobType, TimeWindow


logger = get_logger("range_resolver")


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


class RangeResolver:
    """
    Resolves the sync window for a job type.

    Precedence: explicit caller bounds, then the resumption point of the
    last resumable run, then a fixed lookback from now.
    """

    def __init__(
        self,
        ledger: JobLedger,
        default_lookback_ms: int,
        clock: Callable[[], int] = now_ms,
    ):
        self.ledger = ledger
        self.default_lookback_ms = default_lookback_ms
        self.clock = clock

    def resolve(
        self,
        job_type: JobType,
        explicit_start: int | None = None,
        explicit_end: int | None = None,
    ) -> TimeWindow:
        """
        Return the window to synchronize.

        Both explicit bounds are returned verbatim, with no check against
        history. A ledger failure falls back to the default lookback.
        """
        if explicit_start is not None and explicit_end is not None:
            return TimeWindow(explicit_start, explicit_end)

        end = explicit_end if explicit_end is not None else self.clock()
        if explicit_start is not None:
            if explicit_start > end:
                raise ValueError(f"start_time {explicit_start} is in the future")
            return TimeWindow(explicit_start, end)

        try:
            last_job = self.ledger.last_resumable(job_type)
        except LedgerError as e:
            logger.warning(
                "Ledger lookup failed for %s, degrading to %d ms lookback: %s",
                job_type.value,
                self.default_lookback_ms,
                e,
            )
            return TimeWindow(end - self.default_lookback_ms, end)

        if last_job is None:
            logger.info("First %s sync, using default lookback", job_type.value)
            return TimeWindow(end - self.default_lookback_ms, end)

        # Clock skew can put the resume point past now
        start = min(last_job.next_start_time, end)
        logger.info(
            "Resuming %s sync after job %s from %d", job_type.value, last_job.id, start
        )
        return TimeWindow(start, end)

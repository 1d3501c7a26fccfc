"""Persistent bookkeeping of sync runs."""

import httpx

from walletsync.database import Database
from walletsync.exceptions import LedgerError
from walletsync.logging_config import get_logger
from walletsync.services.types import (
    JobStatus,
    JobType,
    SyncCounters,
    SyncJob,
    TimeWindow,
)


logger = get_logger("job_ledger")

RESUMABLE_STATUSES = (JobStatus.SUCCESS, JobStatus.PARTIAL)


def _ledger_error(action: str, error: Exception) -> LedgerError:
    status_code = None
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
    return LedgerError(f"Failed to {action}: {error}", status_code=status_code)


class JobLedger:
    """
    One record per sync run: created ``running``, finalized exactly once.

    The ledger is the resumption anchor for the next run of the same job
    type, so finalized runs are never rewritten.
    """

    def __init__(self, db: Database):
        self.db = db
        self._finalized: set[str] = set()

    def create_run(self, job_type: JobType, window: TimeWindow) -> SyncJob:
        """
        Persist a new run in ``running`` status.

        Raises:
            LedgerError: The store is unreachable or did not return an id.
        """
        logger.info(
            "Creating %s sync job for [%d, %d]", job_type.value, window.start, window.end
        )
        try:
            data = self.db.create_sync_job({
                "jobType": job_type.value,
                "startTime": window.start,
                "endTime": window.end,
                "status": JobStatus.RUNNING.value,
            })
        except (httpx.HTTPError, ValueError) as e:
            raise _ledger_error("create sync job", e)

        job_id = data.get("id") if isinstance(data, dict) else None
        if job_id is None or job_id == "":
            raise LedgerError("Failed to create sync job record: no id returned")

        return SyncJob(
            id=str(job_id),
            job_type=job_type,
            window=window,
            status=JobStatus.RUNNING,
        )

    def finalize_run(
        self,
        job_id: str,
        status: JobStatus,
        counters: SyncCounters,
        error_message: str | None = None,
        next_start_time: int | None = None,
    ) -> None:
        """
        Write the terminal state of a run. Only one write per run is allowed.

        Raises:
            ValueError: ``status`` is not terminal.
            LedgerError: The run was already finalized, or the store failed.
        """
        if not status.is_terminal:
            raise ValueError(f"Cannot finalize sync job with status {status.value}")
        if job_id in self._finalized:
            raise LedgerError(f"Sync job {job_id} is already finalized")

        data: dict = {"status": status.value, **counters.to_payload()}
        if status is JobStatus.FAILED and error_message:
            data["errorMessage"] = error_message
        if next_start_time is not None:
            data["nextStartTime"] = next_start_time

        logger.info("Finalizing sync job %s as %s", job_id, status.value)
        try:
            self.db.update_sync_job(job_id, data)
        except (httpx.HTTPError, ValueError) as e:
            raise _ledger_error(f"update sync job {job_id}", e)
        self._finalized.add(job_id)

    def last_resumable(self, job_type: JobType) -> SyncJob | None:
        """
        Most recent ``success``/``partial`` run carrying a resumption point.

        Raises:
            LedgerError: Any failure other than "not found".
        """
        try:
            data = self.db.get_last_successful_sync_job(job_type.value)
        except (httpx.HTTPError, ValueError) as e:
            raise _ledger_error("get last successful sync job", e)

        if not data:
            logger.info("No previous %s sync job found", job_type.value)
            return None

        try:
            job = SyncJob.from_payload(data)
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"Malformed sync job from ledger: {e}")

        if job.status not in RESUMABLE_STATUSES or job.next_start_time is None:
            logger.info(
                "Last %s sync job %s is not resumable (status=%s)",
                job_type.value,
                job.id,
                job.status.value,
            )
            return None
        return job

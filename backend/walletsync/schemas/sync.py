"""Sync job schemas."""

from pydantic import BaseModel, Field, model_validator

from walletsync.services.types import SyncJob, SyncJobResult


class SyncTriggerRequest(BaseModel):
    """Body for triggering a deposit or withdrawal sync."""

    app_user_id: str | None = None
    external_user_id: str | None = Field(
        None, description="Exchange-side user id; falls back to EXTERNAL_USER_ID"
    )
    start_time: int | None = Field(None, ge=0, description="Explicit start (epoch ms)")
    end_time: int | None = Field(None, ge=0, description="Explicit end (epoch ms)")

    @model_validator(mode="after")
    def check_window(self) -> "SyncTriggerRequest":
        if (
            self.start_time is not None
            and self.end_time is not None
            and self.start_time > self.end_time
        ):
            raise ValueError("start_time must not be after end_time")
        return self


class SyncJobResultResponse(BaseModel):
    """Outcome of one sync run."""

    sync_job_id: str
    job_type: str
    start_time: int
    end_time: int
    status: str
    records_processed: int
    records_inserted: int
    records_duplicated: int
    records_failed: int
    error_message: str | None = None
    next_start_time: int | None = None

    @classmethod
    def from_result(cls, result: SyncJobResult) -> "SyncJobResultResponse":
        return cls(
            sync_job_id=result.sync_job_id,
            job_type=result.job_type.value,
            start_time=result.window.start,
            end_time=result.window.end,
            status=result.status.value,
            records_processed=result.counters.processed,
            records_inserted=result.counters.inserted,
            records_duplicated=result.counters.duplicated,
            records_failed=result.counters.failed,
            error_message=result.error_message,
            next_start_time=result.next_start_time,
        )


class SyncJobResponse(BaseModel):
    """Single sync job as stored in the ledger."""

    id: str
    job_type: str
    start_time: int
    end_time: int
    status: str
    records_processed: int
    records_inserted: int
    records_duplicated: int
    records_failed: int
    error_message: str | None = None
    next_start_time: int | None = None

    @classmethod
    def from_job(cls, job: SyncJob) -> "SyncJobResponse":
        return cls(
            id=job.id,
            job_type=job.job_type.value,
            start_time=job.window.start,
            end_time=job.window.end,
            status=job.status.value,
            records_processed=job.counters.processed,
            records_inserted=job.counters.inserted,
            records_duplicated=job.counters.duplicated,
            records_failed=job.counters.failed,
            error_message=job.error_message,
            next_start_time=job.next_start_time,
        )

"""Value types shared by the sync pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any


class JobType(str, enum.Enum):
    """Category of wallet history being synchronized."""

    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


class JobStatus(str, enum.Enum):
    """Lifecycle state of a sync job."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.RUNNING


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Inclusive ``[start, end]`` range of epoch milliseconds."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start > self.end:
            msg = f"TimeWindow start {self.start} is after end {self.end}"
            raise ValueError(msg)

    @property
    def duration_ms(self) -> int:
        return self.end - self.start


def ms_to_iso(timestamp_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string ending in ``Z``."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return value


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """Canonical transaction shape handed to the downstream store.

    ``change_amount`` is the signed amount exactly as the upstream wrote it,
    never converted to float.
    """

    external_user_id: str
    occurred_at: int
    account: str
    operation: str
    asset: str
    change_amount: str
    remark: str | None
    raw_payload: dict[str, Any] = field(default_factory=dict)
    app_user_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "externalUserId": self.external_user_id,
            "utcTime": ms_to_iso(self.occurred_at),
            "account": self.account,
            "operation": self.operation,
            "coin": self.asset,
            "change": self.change_amount,
            "remark": self.remark,
            "raw": _jsonable(self.raw_payload),
        }
        if self.app_user_id is not None:
            payload["appUserId"] = self.app_user_id
        return payload


@dataclass(frozen=True, slots=True)
class SyncCounters:
    """Running record counts for one sync job."""

    processed: int = 0
    inserted: int = 0
    duplicated: int = 0
    failed: int = 0

    def to_payload(self) -> dict[str, int]:
        return {
            "recordsProcessed": self.processed,
            "recordsInserted": self.inserted,
            "recordsDuplicated": self.duplicated,
            "recordsFailed": self.failed,
        }


@dataclass(frozen=True, slots=True)
class SyncJob:
    """One persisted sync run as stored by the ledger."""

    id: str
    job_type: JobType
    window: TimeWindow
    status: JobStatus
    counters: SyncCounters = SyncCounters()
    error_message: str | None = None
    next_start_time: int | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> SyncJob:
        """Build a job from the ledger's JSON (camelCase) representation."""
        next_start = data.get("nextStartTime")
        return cls(
            id=str(data["id"]),
            job_type=JobType(data["jobType"]),
            window=TimeWindow(int(data["startTime"]), int(data["endTime"])),
            status=JobStatus(data["status"]),
            counters=SyncCounters(
                processed=int(data.get("recordsProcessed") or 0),
                inserted=int(data.get("recordsInserted") or 0),
                duplicated=int(data.get("recordsDuplicated") or 0),
                failed=int(data.get("recordsFailed") or 0),
            ),
            error_message=data.get("errorMessage"),
            next_start_time=int(next_start) if next_start is not None else None,
        )


@dataclass(frozen=True, slots=True)
class SyncJobResult:
    """What a caller gets back from one orchestrated run."""

    sync_job_id: str
    job_type: JobType
    window: TimeWindow
    status: JobStatus
    counters: SyncCounters
    error_message: str | None = None
    next_start_time: int | None = None

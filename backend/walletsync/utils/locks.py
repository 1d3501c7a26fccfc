"""Single-flight guard for sync runs, keyed by job type."""

import threading
from contextlib import contextmanager
from typing import Iterator

from walletsync.services.types import JobType


_locks: dict[JobType, threading.Lock] = {job_type: threading.Lock() for job_type in JobType}


@contextmanager
def job_type_lock(job_type: JobType) -> Iterator[bool]:
    """
    Try to take the lock for a job type without waiting.

    Yields True when acquired, False when another run of the same type is
    in progress. Two overlapping runs would both resume from the same
    ledger entry.
    """
    lock = _locks[job_type]
    acquired = lock.acquire(blocking=False)
    try:
        yield acquired
    finally:
        if acquired:
            lock.release()


def is_running(job_type: JobType) -> bool:
    """Whether a run of this job type currently holds the lock."""
    return _locks[job_type].locked()

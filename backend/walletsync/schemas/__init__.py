"""Pydantic schemas for request/response validation."""

from walletsync.schemas.common import ErrorResponse
from walletsync.schemas.sync import (
    SyncTriggerRequest,
    SyncJobResultResponse,
    SyncJobResponse,
)

__all__ = [
    # Common
    "ErrorResponse",
    # Sync
    "SyncTriggerRequest",
    "SyncJobResultResponse",
    "SyncJobResponse",
]

"""Sync router - trigger and monitor wallet history syncs."""

from fastapi import APIRouter, Depends, HTTPException, status

from walletsync.config import Settings, get_settings
from walletsync.dependencies import get_ledger, get_orchestrator, verify_api_token
from walletsync.logging_config import get_logger
from walletsync.schemas.sync import (
    SyncJobResponse,
    SyncJobResultResponse,
    SyncTriggerRequest,
)
from walletsync.services.job_ledger import JobLedger
from walletsync.services.sync_service import SyncOrchestrator
from walletsync.services.types import JobType
from walletsync.utils.locks import is_running, job_type_lock


router = APIRouter(
    prefix="/sync",
    tags=["Sync"],
    dependencies=[Depends(verify_api_token)],
)
logger = get_logger("routers.sync")


@router.get("/status")
async def get_sync_status():
    """Which job types currently have a run in progress."""
    return {job_type.value: is_running(job_type) for job_type in JobType}


@router.post("/{job_type}", response_model=SyncJobResultResponse)
def trigger_sync(
    job_type: JobType,
    request: SyncTriggerRequest | None = None,
    settings: Settings = Depends(get_settings),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """
    Run a deposit or withdrawal sync and wait for the result.

    Without explicit bounds the run resumes after the last successful job,
    or looks back INITIAL_SYNC_DAYS on the first run.
    """
    request = request or SyncTriggerRequest()
    external_user_id = request.external_user_id or settings.external_user_id
    if not external_user_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="external_user_id is required",
        )

    with job_type_lock(job_type) as acquired:
        if not acquired:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A {job_type.value} sync is already running",
            )
        try:
            result = orchestrator.run(
                job_type,
                external_user_id=external_user_id,
                app_user_id=request.app_user_id or settings.app_user_id,
                start_time=request.start_time,
                end_time=request.end_time,
            )
        except ValueError as e:
            # Window rejected before any sync job was created
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(e),
            )

    logger.info("Triggered %s sync finished as %s", job_type.value, result.status.value)
    return SyncJobResultResponse.from_result(result)


@router.get("/{job_type}/last", response_model=SyncJobResponse)
async def get_last_sync_job(
    job_type: JobType,
    ledger: JobLedger = Depends(get_ledger),
):
    """Get the last resumable sync job for a job type."""
    job = ledger.last_resumable(job_type)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No resumable {job_type.value} sync job",
        )
    return SyncJobResponse.from_job(job)

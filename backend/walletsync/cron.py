"""Scheduled cron jobs for background tasks."""

from fastapi_utils.tasks import repeat_every

from walletsync.config import get_settings
from walletsync.exceptions import WalletSyncError
from walletsync.logging_config import get_logger
from walletsync.services.sync_service import SyncOrchestrator, build_orchestrator
from walletsync.services.types import JobType, SyncJobResult
from walletsync.utils.locks import job_type_lock


settings = get_settings()
logger = get_logger("cron")


def run_scheduled_sync(
    orchestrator: SyncOrchestrator,
    external_user_id: str,
    app_user_id: str | None = None,
) -> dict[JobType, SyncJobResult | None]:
    """
    Sync deposits, then withdrawals.

    A job type whose previous run is still going is skipped for this tick.
    A failure of one job type does not stop the other.
    """
    results: dict[JobType, SyncJobResult | None] = {}
    for job_type in (JobType.DEPOSIT, JobType.WITHDRAW):
        with job_type_lock(job_type) as acquired:
            if not acquired:
                logger.info("[CRON] Skipping %s sync - already running", job_type.value)
                results[job_type] = None
                continue
            try:
                result = orchestrator.run(job_type, external_user_id, app_user_id)
            except WalletSyncError as e:
                logger.error("[CRON] %s sync failed: %s", job_type.value, e)
                results[job_type] = None
                continue

        logger.info(
            "[CRON] %s sync %s: %d processed, %d inserted, %d duplicated, %d failed",
            job_type.value,
            result.status.value,
            result.counters.processed,
            result.counters.inserted,
            result.counters.duplicated,
            result.counters.failed,
        )
        results[job_type] = result
    return results


@repeat_every(seconds=settings.sync_interval_seconds, logger=logger)
def sync_wallet_history() -> None:
    """
    Auto-sync deposits and withdrawals for the configured exchange user.

    Runs every SYNC_INTERVAL_SECONDS; each run resumes where the ledger says
    the previous one stopped.
    """
    if not settings.external_user_id:
        logger.warning("[CRON] EXTERNAL_USER_ID not set, skipping wallet sync")
        return

    logger.info("[CRON] Starting wallet history sync...")
    run_scheduled_sync(
        build_orchestrator(settings=settings),
        settings.external_user_id,
        settings.app_user_id,
    )

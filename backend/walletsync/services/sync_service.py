"""Sync service - orchestrates incremental wallet history syncing."""

import enum
from dataclasses import replace

from walletsync.config import Settings, get_settings
from walletsync.database import Database, get_store_client
from walletsync.exceptions import FetchError, LedgerError, LoadError
from walletsync.logging_config import get_logger
from walletsync.services.bulk_loader import BulkLoader, LoadMetadata, LoadResult
from walletsync.services.chunker import Chunker
from walletsync.services.job_ledger import JobLedger
from walletsync.services.range_resolver import RangeResolver
from walletsync.services.transformer import RecordTransformer
from walletsync.services.types import (
    JobStatus,
    JobType,
    SyncCounters,
    SyncJobResult,
    TimeWindow,
)
from walletsync.services.upstream_service import (
    PaginatedFetcher,
    UpstreamService,
    get_upstream_client,
)


logger = get_logger("sync_service")


class SyncState(str, enum.Enum):
    INITIALIZING = "initializing"
    RUN_CREATED = "run_created"
    CHUNK_LOOP = "chunk_loop"
    FINALIZING = "finalizing"
    DONE = "done"


STATE_ORDER = list(SyncState)


def fold_page(
    counters: SyncCounters,
    page_size: int,
    transform_failures: int,
    load: LoadResult | None,
) -> SyncCounters:
    """
    Add one page's outcome to the running counters.

    ``load`` is None when nothing from the page reached the store, either
    because no record survived the transformer or because the bulk call
    failed; the whole page then counts as failed.
    """
    if load is None:
        return replace(
            counters,
            processed=counters.processed + page_size,
            failed=counters.failed + page_size,
        )
    return SyncCounters(
        processed=counters.processed + page_size,
        inserted=counters.inserted + load.inserted,
        duplicated=counters.duplicated + load.duplicated,
        failed=counters.failed + transform_failures + load.failed,
    )


def derive_status(counters: SyncCounters, aborted: bool) -> JobStatus:
    """
    Terminal status of a run.

    ``failed`` is reserved for runs aborted before any record was
    processed; a run with processed records and failures is ``partial``.
    """
    if aborted:
        return JobStatus.FAILED if counters.processed == 0 else JobStatus.PARTIAL
    if counters.failed == 0:
        return JobStatus.SUCCESS
    return JobStatus.PARTIAL if counters.processed > 0 else JobStatus.FAILED


class SyncOrchestrator:
    """
    End-to-end incremental sync for one job type at a time.

    Chunks and pages are processed strictly in order. Two runs of the same
    job type must not overlap; callers hold a lock per job type
    (see ``walletsync.utils.locks``).
    """

    def __init__(
        self,
        resolver: RangeResolver,
        chunker: Chunker,
        fetcher: PaginatedFetcher,
        transformer: RecordTransformer,
        loader: BulkLoader,
        ledger: JobLedger,
        page_limit: int = 1000,
        source: str = "cronjob-binance",
    ):
        self.resolver = resolver
        self.chunker = chunker
        self.fetcher = fetcher
        self.transformer = transformer
        self.loader = loader
        self.ledger = ledger
        self.page_limit = page_limit
        self.source = source

    def run(
        self,
        job_type: JobType,
        external_user_id: str,
        app_user_id: str | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> SyncJobResult:
        """
        Synchronize one job type.

        1. Resolves the window and creates a ``running`` sync job.
        2. Splits the window into chunks and pages through each one.
        3. Transforms every page and bulk loads the survivors.
        4. Finalizes the job with counts, status and resumption point.

        Raises:
            ValueError: ``external_user_id`` is empty or the window is invalid.
            LedgerError: The sync job could not be created; nothing was fetched.
            FetchError: The upstream failed before any record was processed. The
                job is finalized ``failed`` first.
        """
        if not external_user_id:
            raise ValueError(f"external_user_id is required for syncing {job_type.value}")

        state = SyncState.INITIALIZING
        window = self.resolver.resolve(job_type, start_time, end_time)
        logger.info(
            "Starting %s sync for [%d, %d] (user %s)",
            job_type.value,
            window.start,
            window.end,
            app_user_id or external_user_id,
        )

        job = self.ledger.create_run(job_type, window)
        state = self._advance(job.id, state, SyncState.RUN_CREATED)

        chunks = self.chunker.split(window)
        logger.info("Divided time range into %d chunk(s)", len(chunks))
        metadata = LoadMetadata(
            source=self.source,
            external_user_id=external_user_id,
            app_user_id=app_user_id,
        )

        counters = SyncCounters()
        fetch_error: FetchError | None = None
        state = self._advance(job.id, state, SyncState.CHUNK_LOOP)
        try:
            for index, chunk in enumerate(chunks, start=1):
                logger.info(
                    "Processing %s chunk %d/%d [%d, %d] (job %s)",
                    job_type.value,
                    index,
                    len(chunks),
                    chunk.start,
                    chunk.end,
                    job.id,
                )
                for page in self.fetcher.fetch_pages(chunk, self.page_limit, job_type):
                    counters = self._process_page(
                        page, job_type, external_user_id, app_user_id, metadata, counters
                    )
        except FetchError as e:
            logger.error("Aborting %s sync job %s: %s", job_type.value, job.id, e)
            fetch_error = e
        except Exception as e:
            state = self._advance(job.id, state, SyncState.FINALIZING)
            logger.exception("Unexpected error in %s sync job %s", job_type.value, job.id)
            self._finalize(job.id, JobStatus.FAILED, counters, str(e), None)
            raise

        state = self._advance(job.id, state, SyncState.FINALIZING)
        result = self._finish(job.id, job_type, window, counters, fetch_error)
        self._advance(job.id, state, SyncState.DONE)

        if fetch_error is not None and result.status is JobStatus.FAILED:
            raise fetch_error
        return result

    def sync_deposits(
        self,
        external_user_id: str,
        app_user_id: str | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> SyncJobResult:
        return self.run(JobType.DEPOSIT, external_user_id, app_user_id, start_time, end_time)

    def sync_withdrawals(
        self,
        external_user_id: str,
        app_user_id: str | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> SyncJobResult:
        return self.run(JobType.WITHDRAW, external_user_id, app_user_id, start_time, end_time)

    def _process_page(
        self,
        page: list[dict],
        job_type: JobType,
        external_user_id: str,
        app_user_id: str | None,
        metadata: LoadMetadata,
        counters: SyncCounters,
    ) -> SyncCounters:
        outcome = self.transformer.transform_page(
            page, job_type, external_user_id, app_user_id
        )
        if not outcome.successes:
            return fold_page(counters, len(page), len(outcome.failures), None)

        try:
            load = self.loader.load(outcome.successes, metadata)
        except LoadError as e:
            logger.error(
                "Failed to save %d %s transaction(s): %s",
                len(outcome.successes),
                job_type.value,
                e,
            )
            return fold_page(counters, len(page), len(outcome.failures), None)
        return fold_page(counters, len(page), len(outcome.failures), load)

    def _finish(
        self,
        job_id: str,
        job_type: JobType,
        window: TimeWindow,
        counters: SyncCounters,
        fetch_error: FetchError | None,
    ) -> SyncJobResult:
        aborted = fetch_error is not None
        status = derive_status(counters, aborted)

        error_message = None
        next_start_time = None
        if status is JobStatus.FAILED:
            error_message = fetch_error.message if aborted else "Sync failed"
        else:
            # Records lost to a failure are not retried by later runs
            next_start_time = window.end + 1

        self._finalize(job_id, status, counters, error_message, next_start_time)
        logger.info(
            "Completed %s sync job %s: status=%s processed=%d inserted=%d "
            "duplicated=%d failed=%d",
            job_type.value,
            job_id,
            status.value,
            counters.processed,
            counters.inserted,
            counters.duplicated,
            counters.failed,
        )
        return SyncJobResult(
            sync_job_id=job_id,
            job_type=job_type,
            window=window,
            status=status,
            counters=counters,
            error_message=error_message,
            next_start_time=next_start_time,
        )

    def _finalize(
        self,
        job_id: str,
        status: JobStatus,
        counters: SyncCounters,
        error_message: str | None,
        next_start_time: int | None,
    ) -> None:
        try:
            self.ledger.finalize_run(
                job_id,
                status,
                counters,
                error_message=error_message,
                next_start_time=next_start_time,
            )
        except LedgerError as e:
            # Downstream dedup absorbs a re-run of this window
            logger.error("Failed to finalize sync job %s: %s", job_id, e)

    @staticmethod
    def _advance(job_id: str, current: SyncState, target: SyncState) -> SyncState:
        """Move the run forward; a state is never entered twice."""
        if STATE_ORDER.index(target) <= STATE_ORDER.index(current):
            raise RuntimeError(
                f"Sync job {job_id}: invalid transition {current.value} -> {target.value}"
            )
        logger.debug("Sync job %s: %s -> %s", job_id, current.value, target.value)
        return target


def build_orchestrator(
    settings: Settings | None = None,
    db: Database | None = None,
    upstream: UpstreamService | None = None,
) -> SyncOrchestrator:
    """Wire an orchestrator from settings and the shared HTTP clients."""
    settings = settings or get_settings()
    db = db or Database(get_store_client())
    upstream = upstream or UpstreamService(get_upstream_client())

    ledger = JobLedger(db)
    return SyncOrchestrator(
        resolver=RangeResolver(ledger, settings.initial_lookback_ms),
        chunker=Chunker(settings.chunk_size_ms),
        fetcher=PaginatedFetcher(upstream),
        transformer=RecordTransformer(),
        loader=BulkLoader(db),
        ledger=ledger,
        page_limit=settings.page_limit,
        source=settings.bulk_source,
    )

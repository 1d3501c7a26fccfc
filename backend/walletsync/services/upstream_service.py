"""Upstream exchange proxy client and the paginated history fetcher.

The proxy exposes the exchange wallet history endpoints as plain JSON:
``GET /api/v1/wallet/deposit/history`` and
``GET /api/v1/wallet/withdraw/history``, both taking ``startTime``,
``endTime`` (epoch ms, inclusive) and ``limit``, and answering with an
array of records in ascending time order.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Any, Iterator

import httpx

from walletsync.config import get_settings
from walletsync.exceptions import FetchError
from walletsync.logging_config import get_logger
from walletsync.services.transformer import DEPOSIT_STATUS_SUCCESS, record_timestamp
from walletsync.services.types import JobType, TimeWindow


logger = get_logger("upstream")

HISTORY_PATHS = {
    JobType.DEPOSIT: "/api/v1/wallet/deposit/history",
    JobType.WITHDRAW: "/api/v1/wallet/withdraw/history",
}


@lru_cache
def get_upstream_client() -> httpx.Client:
    """Get cached HTTP client for the exchange proxy."""
    settings = get_settings()
    headers = {}
    if settings.upstream_api_key:
        headers["X-API-Key"] = settings.upstream_api_key
    return httpx.Client(
        base_url=settings.upstream_api_url,
        timeout=settings.http_timeout_seconds,
        headers=headers,
    )


class UpstreamService:
    """Thin wrapper over the proxy's wallet history endpoints."""

    def __init__(self, client: httpx.Client):
        self.client = client

    def get_history(
        self,
        job_type: JobType,
        start_time: int,
        end_time: int,
        limit: int,
    ) -> list[dict[str, Any]]:
        """
        Fetch one page of history.

        Deposits are filtered to successful ones upstream (``status=1``);
        the transformer still enforces the rule in case the filter is ignored.

        Raises:
            FetchError: On transport errors, non-2xx answers, or a payload
                that is not a JSON array.
        """
        params: dict[str, Any] = {
            "startTime": start_time,
            "endTime": end_time,
            "limit": limit,
        }
        if job_type is JobType.DEPOSIT:
            params["status"] = DEPOSIT_STATUS_SUCCESS

        path = HISTORY_PATHS[job_type]
        logger.debug("Fetching %s history %s", job_type.value, params)
        try:
            response = self.client.get(path, params=params)
            response.raise_for_status()
            # Decimal keeps numeric amounts exact
            data = response.json(parse_float=Decimal)
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"Failed to fetch {job_type.value} history: {e}",
                status_code=e.response.status_code,
                details={"startTime": start_time, "endTime": end_time},
            )
        except (httpx.HTTPError, ValueError) as e:
            raise FetchError(
                f"Failed to fetch {job_type.value} history: {e}",
                details={"startTime": start_time, "endTime": end_time},
            )

        if not isinstance(data, list):
            raise FetchError(
                f"Unexpected {job_type.value} history payload: {type(data).__name__}"
            )
        return data

    def get_deposit_history(
        self, start_time: int, end_time: int, limit: int
    ) -> list[dict[str, Any]]:
        return self.get_history(JobType.DEPOSIT, start_time, end_time, limit)

    def get_withdraw_history(
        self, start_time: int, end_time: int, limit: int
    ) -> list[dict[str, Any]]:
        return self.get_history(JobType.WITHDRAW, start_time, end_time, limit)


class PaginatedFetcher:
    """Walks one chunk page by page using a timestamp cursor."""

    def __init__(self, upstream: UpstreamService):
        self.upstream = upstream

    def fetch_pages(
        self,
        chunk: TimeWindow,
        page_limit: int,
        job_type: JobType,
    ) -> Iterator[list[dict[str, Any]]]:
        """
        Yield the pages of a chunk in order.

        A page shorter than ``page_limit`` (including an empty one) ends the
        chunk. A full page moves the cursor to one millisecond past its last
        record and requests again, so a chunk holding an exact multiple of
        ``page_limit`` records costs one extra, empty request.

        Raises:
            FetchError: Propagated from the upstream, or when a full page
                gives no way to advance the cursor.
        """
        if page_limit <= 0:
            raise ValueError(f"page_limit must be positive, got {page_limit}")

        cursor = chunk.start
        page_number = 0
        while True:
            page = self.upstream.get_history(job_type, cursor, chunk.end, page_limit)
            page_number += 1
            logger.info(
                "Fetched %d %s record(s) for [%d, %d] (page %d)",
                len(page),
                job_type.value,
                cursor,
                chunk.end,
                page_number,
            )
            if page:
                yield page

            if len(page) < page_limit:
                return

            last_seen = record_timestamp(page[-1], job_type)
            if last_seen is None:
                raise FetchError(
                    f"Cannot advance cursor: last {job_type.value} record has no timestamp"
                )
            next_cursor = last_seen + 1
            if next_cursor <= cursor:
                raise FetchError(
                    f"Cursor did not advance past {cursor} for {job_type.value} history"
                )
            if next_cursor > chunk.end:
                return
            cursor = next_cursor

    def fetch(
        self,
        chunk: TimeWindow,
        page_limit: int,
        job_type: JobType,
    ) -> Iterator[dict[str, Any]]:
        """Yield the records of a chunk one by one, in upstream order."""
        for page in self.fetch_pages(chunk, page_limit, job_type):
            yield from page

"""Downstream store client setup and request helpers.

The store is an HTTP JSON service that owns both the transactions table
(bulk insert with its own uniqueness constraint) and the sync job ledger.
"""

from functools import lru_cache
from typing import Any

import httpx

from walletsync.config import get_settings


@lru_cache
def get_store_client() -> httpx.Client:
    """Get cached HTTP client for the downstream store."""
    settings = get_settings()
    return httpx.Client(
        base_url=settings.ledger_api_url,
        timeout=settings.http_timeout_seconds,
    )


def get_db() -> "Database":
    """Dependency for getting a Database helper in routes and jobs."""
    return Database(get_store_client())


class Database:
    """Request helpers for the downstream store.

    Every method raises ``httpx.HTTPError`` on transport failures and
    non-2xx answers; the services above translate those into the sync
    error taxonomy.
    """

    def __init__(self, client: httpx.Client):
        self.client = client

    # --- Transactions ---

    def save_bulk_transactions(
        self,
        transactions: list[dict],
        source: str | None = None,
        external_user_id: str | None = None,
        app_user_id: str | None = None,
    ) -> dict:
        payload: dict[str, Any] = {"transactions": transactions}
        if source:
            payload["source"] = source
        if external_user_id:
            payload["externalUserId"] = external_user_id
        if app_user_id:
            payload["appUserId"] = app_user_id
        response = self.client.post("/api/transactions/bulk", json=payload)
        response.raise_for_status()
        return response.json()

    # --- Sync Jobs ---

    def create_sync_job(self, job_data: dict) -> dict:
        response = self.client.post("/api/sync-jobs", json=job_data)
        response.raise_for_status()
        return response.json()

    def update_sync_job(self, job_id: str, data: dict) -> dict | None:
        response = self.client.patch(f"/api/sync-jobs/{job_id}", json=data)
        response.raise_for_status()
        return response.json() if response.content else None

    def get_last_successful_sync_job(self, job_type: str) -> dict | None:
        response = self.client.get(
            "/api/sync-jobs/last-successful",
            params={"jobType": job_type},
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return response.json() if response.content else None

"""Submit transformed transactions to the downstream store in bulk."""

from dataclasses import dataclass

import httpx

from walletsync.database import Database
from walletsync.exceptions import LoadError
from walletsync.logging_config import get_logger
from walletsync.services.types import TransactionRecord


logger = get_logger("bulk_loader")


@dataclass(frozen=True, slots=True)
class LoadMetadata:
    """Batch-level attributes sent alongside the records."""

    source: str
    external_user_id: str | None = None
    app_user_id: str | None = None


@dataclass(frozen=True, slots=True)
class LoadResult:
    """Counts as reported by the store; never computed locally."""

    inserted: int = 0
    duplicated: int = 0
    failed: int = 0


def _count(data: dict, key: str) -> int:
    value = data.get(key)
    return int(value) if value else 0


class BulkLoader:
    """Hands batches to the store, which owns deduplication."""

    def __init__(self, db: Database):
        self.db = db

    def load(
        self, records: list[TransactionRecord], metadata: LoadMetadata
    ) -> LoadResult:
        """
        Insert a batch and report what the store did with it.

        Rejections of individual records come back in ``failed``; only a
        failure of the call itself raises.

        Raises:
            LoadError: Transport error or non-2xx answer from the store.
        """
        if not records:
            return LoadResult()

        logger.info(
            "Saving %d transaction(s) to store (source=%s)",
            len(records),
            metadata.source,
        )
        try:
            data = self.db.save_bulk_transactions(
                [record.to_payload() for record in records],
                source=metadata.source,
                external_user_id=metadata.external_user_id,
                app_user_id=metadata.app_user_id,
            )
        except httpx.HTTPStatusError as e:
            raise LoadError(
                f"Failed to save bulk data: {e}",
                status_code=e.response.status_code,
                details={"recordCount": len(records)},
            )
        except (httpx.HTTPError, ValueError) as e:
            raise LoadError(
                f"Failed to save bulk data: {e}",
                details={"recordCount": len(records)},
            )

        if not isinstance(data, dict):
            raise LoadError(f"Unexpected bulk response: {type(data).__name__}")

        result = LoadResult(
            inserted=_count(data, "inserted"),
            duplicated=_count(data, "duplicated"),
            failed=_count(data, "failed"),
        )
        logger.info(
            "Saved transactions: %d inserted, %d duplicated, %d failed",
            result.inserted,
            result.duplicated,
            result.failed,
        )
        return result

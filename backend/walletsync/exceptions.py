"""Error taxonomy for the sync pipeline.

Each error carries the stage it belongs to so callers can branch on the
type instead of on message text:

- TransformError: one upstream record could not be mapped. Collected, never fatal.
- FetchError: a page request failed. Aborts the run.
- LoadError: a bulk insert call failed as a whole. The batch counts as failed.
- LedgerError: the sync job store could not be read or written.
"""

from typing import Any


class WalletSyncError(Exception):
    """Base error for the sync pipeline."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class TransformError(WalletSyncError):
    """Missing required field or failed business precondition on a record."""


class FetchError(WalletSyncError):
    """Transport or upstream HTTP failure while paginating."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


class LoadError(WalletSyncError):
    """The bulk insert request itself failed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


class LedgerError(WalletSyncError):
    """The sync job ledger is unreachable or answered with an error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)

"""Pytest configuration and fixtures."""

import os
import httpx
import pytest

# Set test environment before importing the app
os.environ["APP_ENV"] = "testing"
os.environ["ENABLE_CRON_JOBS"] = "false"

from walletsync.exceptions import FetchError
from walletsync.services.bulk_loader import BulkLoader
from walletsync.services.chunker import Chunker
from walletsync.services.job_ledger import JobLedger
from walletsync.services.range_resolver import RangeResolver
from walletsync.services.sync_service import SyncOrchestrator
from walletsync.services.transformer import RecordTransformer, record_timestamp
from walletsync.services.types import JobType
from walletsync.services.upstream_service import PaginatedFetcher


DAY_MS = 24 * 60 * 60 * 1000
T0 = 1_700_000_000_000


class FakeUpstream:
    """In-memory exchange proxy answering history requests like the real one."""

    def __init__(self, deposits=None, withdrawals=None):
        self.records = {
            JobType.DEPOSIT: list(deposits or []),
            JobType.WITHDRAW: list(withdrawals or []),
        }
        self.calls = []
        self.fail_on_call = None  # 1-based call number that raises

    def get_history(self, job_type, start_time, end_time, limit):
        self.calls.append((job_type, start_time, end_time, limit))
        if self.fail_on_call == len(self.calls):
            raise FetchError("Failed to fetch history: 503 Service Unavailable", 503)

        matching = [
            record
            for record in self.records[job_type]
            if start_time <= record_timestamp(record, job_type) <= end_time
        ]
        matching.sort(key=lambda record: record_timestamp(record, job_type))
        return matching[:limit]


class FakeStore:
    """
    In-memory downstream store: transactions with a uniqueness constraint
    plus the sync job ledger.
    """

    def __init__(self):
        self.transactions = {}
        self.jobs = {}
        self.bulk_calls = []
        self.fail_bulk = False
        self.fail_create = False
        self.fail_update = False
        self.fail_lookup = False
        self._next_id = 1

    # --- Transactions ---

    def save_bulk_transactions(
        self, transactions, source=None, external_user_id=None, app_user_id=None
    ):
        self.bulk_calls.append(
            {
                "transactions": transactions,
                "source": source,
                "externalUserId": external_user_id,
                "appUserId": app_user_id,
            }
        )
        if self.fail_bulk:
            raise httpx.ConnectError("store unreachable")

        inserted = duplicated = 0
        for txn in transactions:
            key = (
                txn["externalUserId"],
                txn["utcTime"],
                txn["operation"],
                txn["coin"],
                txn["change"],
            )
            if key in self.transactions:
                duplicated += 1
            else:
                self.transactions[key] = txn
                inserted += 1
        return {"inserted": inserted, "duplicated": duplicated, "failed": 0}

    # --- Sync Jobs ---

    def create_sync_job(self, job_data):
        if self.fail_create:
            raise httpx.ConnectError("ledger unreachable")
        job = {**job_data, "id": self._next_id}
        self.jobs[str(self._next_id)] = job
        self._next_id += 1
        return job

    def update_sync_job(self, job_id, data):
        if self.fail_update:
            raise httpx.ConnectError("ledger unreachable")
        self.jobs[str(job_id)].update(data)
        return self.jobs[str(job_id)]

    def get_last_successful_sync_job(self, job_type):
        if self.fail_lookup:
            raise httpx.ConnectError("ledger unreachable")
        candidates = [
            job
            for job in self.jobs.values()
            if job["jobType"] == job_type
            and job["status"] in ("success", "partial")
            and job.get("nextStartTime") is not None
        ]
        return max(candidates, key=lambda job: job["id"]) if candidates else None


def make_deposit(insert_time, amount="1.00000000", status=1, **extra):
    record = {
        "amount": amount,
        "coin": "USDT",
        "network": "TRX",
        "status": status,
        "address": "TXabc123",
        "addressTag": "",
        "txId": f"tx-{insert_time}",
        "insertTime": insert_time,
        "transferType": 1,
        "unlockConfirm": 0,
        "confirmTimes": "1/1",
    }
    record.update(extra)
    return record


def make_withdrawal(apply_time, amount="5.00000000", **extra):
    record = {
        "id": f"wd-{apply_time}",
        "amount": amount,
        "transactionFee": "1",
        "coin": "USDT",
        "status": 6,
        "address": "TXdest456",
        "addressTag": "",
        "txId": f"wtx-{apply_time}",
        "applyTime": apply_time,
        "network": "TRX",
        "transferType": 0,
    }
    record.update(extra)
    return record


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def clock():
    return lambda: T0 + 30 * DAY_MS


@pytest.fixture
def make_orchestrator(store, upstream, clock):
    """Build an orchestrator over the fakes; page limit and chunk size are tunable."""

    def _make(page_limit=1000, chunk_days=7, lookback_days=90):
        ledger = JobLedger(store)
        return SyncOrchestrator(
            resolver=RangeResolver(ledger, lookback_days * DAY_MS, clock=clock),
            chunker=Chunker(chunk_days * DAY_MS),
            fetcher=PaginatedFetcher(upstream),
            transformer=RecordTransformer(),
            loader=BulkLoader(store),
            ledger=ledger,
            page_limit=page_limit,
            source="cronjob-binance",
        )

    return _make

"""Tests for the sync HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

from walletsync.config import Settings, get_settings
from walletsync.dependencies import get_ledger, get_orchestrator
from walletsync.main import app
from walletsync.services.job_ledger import JobLedger
from walletsync.services.types import JobType
from walletsync.utils.locks import is_running, job_type_lock

from conftest import DAY_MS, T0, make_deposit


@pytest.fixture
def settings():
    return Settings(external_user_id="ext-1", app_user_id="user-1", api_token=None)


@pytest.fixture
def client(settings, store, make_orchestrator):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_orchestrator] = lambda: make_orchestrator()
    app.dependency_overrides[get_ledger] = lambda: JobLedger(store)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestTriggerSync:

    def test_runs_deposit_sync(self, client, upstream, store):
        upstream.records[JobType.DEPOSIT] = [make_deposit(T0 + 1), make_deposit(T0 + 2)]

        response = client.post(
            "/api/v1/sync/deposit",
            json={"start_time": T0, "end_time": T0 + DAY_MS},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["job_type"] == "deposit"
        assert data["status"] == "success"
        assert data["records_processed"] == 2
        assert data["records_inserted"] == 2
        assert data["next_start_time"] == T0 + DAY_MS + 1
        assert store.bulk_calls[0]["appUserId"] == "user-1"
        assert store.bulk_calls[0]["externalUserId"] == "ext-1"

    def test_body_is_optional(self, client, upstream):
        response = client.post("/api/v1/sync/withdraw")

        assert response.status_code == 200
        assert response.json()["end_time"] == T0 + 30 * DAY_MS
        assert all(call[0] is JobType.WITHDRAW for call in upstream.calls)

    def test_body_user_overrides_settings(self, client, upstream, store):
        upstream.records[JobType.DEPOSIT] = [make_deposit(T0 + 1)]

        client.post(
            "/api/v1/sync/deposit",
            json={"external_user_id": "ext-2", "start_time": T0, "end_time": T0 + 10},
        )

        assert store.bulk_calls[0]["externalUserId"] == "ext-2"

    def test_missing_external_user_is_rejected(self, client, settings):
        settings.external_user_id = None
        response = client.post("/api/v1/sync/deposit")
        assert response.status_code == 422

    def test_inverted_window_is_rejected(self, client, upstream):
        response = client.post(
            "/api/v1/sync/deposit", json={"start_time": T0 + 1, "end_time": T0}
        )
        assert response.status_code == 422
        assert upstream.calls == []

    def test_start_time_in_the_future_is_rejected(self, client, upstream, store):
        response = client.post(
            "/api/v1/sync/deposit", json={"start_time": T0 + 365 * DAY_MS}
        )
        assert response.status_code == 422
        assert "in the future" in response.json()["detail"]
        assert store.jobs == {}
        assert upstream.calls == []

    def test_unknown_job_type_is_rejected(self, client):
        assert client.post("/api/v1/sync/transfer").status_code == 422

    def test_concurrent_run_is_refused(self, client, upstream):
        with job_type_lock(JobType.DEPOSIT) as acquired:
            assert acquired
            response = client.post("/api/v1/sync/deposit")
        assert response.status_code == 409
        assert upstream.calls == []

    def test_other_job_type_is_not_blocked(self, client):
        with job_type_lock(JobType.DEPOSIT):
            response = client.post("/api/v1/sync/withdraw")
        assert response.status_code == 200

    def test_upstream_failure_maps_to_bad_gateway(self, client, upstream):
        upstream.fail_on_call = 1

        response = client.post("/api/v1/sync/deposit")

        assert response.status_code == 502
        assert response.json()["error"] == "FetchError"
        assert not is_running(JobType.DEPOSIT)

    def test_ledger_failure_maps_to_unavailable(self, client, store):
        store.fail_create = True
        response = client.post("/api/v1/sync/deposit")
        assert response.status_code == 503


class TestStatusAndLastJob:

    def test_status_reports_running_job_types(self, client):
        with job_type_lock(JobType.WITHDRAW):
            response = client.get("/api/v1/sync/status")
        assert response.json() == {"deposit": False, "withdraw": True}

    def test_last_job_not_found(self, client):
        response = client.get("/api/v1/sync/deposit/last")
        assert response.status_code == 404

    def test_last_job_after_run(self, client):
        client.post("/api/v1/sync/deposit", json={"start_time": T0, "end_time": T0 + 5})

        response = client.get("/api/v1/sync/deposit/last")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "1"
        assert data["status"] == "success"
        assert data["next_start_time"] == T0 + 6


class TestApiToken:

    def test_missing_token_is_unauthorized(self, client, settings):
        settings.api_token = "s3cret"
        assert client.get("/api/v1/sync/status").status_code == 401

    def test_wrong_token_is_unauthorized(self, client, settings):
        settings.api_token = "s3cret"
        response = client.get(
            "/api/v1/sync/status", headers={"Authorization": "Bearer nope"}
        )
        assert response.status_code == 401

    def test_valid_token_is_accepted(self, client, settings):
        settings.api_token = "s3cret"
        response = client.get(
            "/api/v1/sync/status", headers={"Authorization": "Bearer s3cret"}
        )
        assert response.status_code == 200

"""Tests for the HTTP surface (on-demand check and health)."""

import httpx
import pytest
from fastapi.testclient import TestClient

from print_notifier.api import create_app
from print_notifier.config.models import AppConfig
from print_notifier.runtime import NotifierRuntime

from tests.helpers import (
    InMemoryJobStore,
    RecordingGateway,
    insert_malformed_job,
    make_job,
    make_user,
)


@pytest.fixture
def api_store():
    return InMemoryJobStore(
        jobs=[
            make_job("J1", "U1"),
            make_job("J2", "U2"),
            make_job("J3", "U1", notified=True),
            make_job("J4", "U1", status="processing"),
        ],
        users=[make_user("U1", "a@x.com")],
    )


@pytest.fixture
def runtime(env_config, api_store):
    return NotifierRuntime(AppConfig(), env_config, store=api_store, gateway=RecordingGateway())


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime, manage_lifecycle=False)) as test_client:
        yield test_client


class TestCheckCompletedJobs:

    def test_returns_per_job_results(self, client, runtime, api_store):
        """Test that every pending completed job gets one result entry."""
        response = client.get("/check-completed-jobs")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Processed completed jobs"
        assert body["results"] == [
            {"success": True, "jobId": "J1"},
            {"success": False, "jobId": "J2", "error": "user not found"},
        ]
        assert runtime.gateway.recipients == ["a@x.com"]
        assert api_store.jobs["J1"].notified is True
        assert api_store.jobs["J2"].notified is False

    def test_already_notified_jobs_excluded(self, client, runtime):
        """Test that a second call reports only the still-failing job."""
        client.get("/check-completed-jobs")

        body = client.get("/check-completed-jobs").json()

        assert [r["jobId"] for r in body["results"]] == ["J2"]
        assert len(runtime.gateway.sent) == 1

    def test_skips_health_check(self, client, api_store):
        """Test that the on-demand path runs even when the health check would fail."""
        api_store.healthy = False

        response = client.get("/check-completed-jobs")

        assert response.status_code == 200
        assert api_store.ping_calls == 0

    def test_query_failure_returns_500(self, client, api_store):
        api_store.fail_queries = True

        response = client.get("/check-completed-jobs")

        assert response.status_code == 500
        assert "database is locked" in response.json()["error"]

    def test_unexpected_error_returns_500(self, client, api_store, monkeypatch):
        async def broken_query(**field_equals):
            raise RuntimeError("cursor closed")

        monkeypatch.setattr(api_store, "find_jobs", broken_query)

        response = client.get("/check-completed-jobs")

        assert response.status_code == 500
        assert response.json() == {"error": "cursor closed"}

    @pytest.mark.asyncio
    async def test_malformed_job_reported_around(self, env_config, job_store, database):
        """Test that a malformed stored job leaves the other results intact."""
        await job_store.save_user(make_user("U1", "a@x.com"))
        await job_store.save_job(make_job("J1", "U1"))
        await insert_malformed_job(database, "J2")
        await job_store.save_job(make_job("J3", "U1"))
        runtime = NotifierRuntime(
            AppConfig(), env_config, store=job_store, gateway=RecordingGateway()
        )
        transport = httpx.ASGITransport(app=create_app(runtime, manage_lifecycle=False))

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/check-completed-jobs")

        assert response.status_code == 200
        assert response.json()["results"] == [
            {"success": True, "jobId": "J1"},
            {"success": True, "jobId": "J3"},
        ]
        assert runtime.gateway.recipients == ["a@x.com", "a@x.com"]

    def test_queries_configured_status(self, env_config, api_store):
        runtime = NotifierRuntime(
            AppConfig(completion_status="complete"),
            env_config,
            store=api_store,
            gateway=RecordingGateway(),
        )

        with TestClient(create_app(runtime, manage_lifecycle=False)) as client:
            body = client.get("/check-completed-jobs").json()

        assert body["results"] == []
        assert api_store.query_calls == [{"status": "complete"}]


class TestHealth:

    def test_healthy_store(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "print-notifier", "store": True}

    def test_degraded_store(self, client, api_store):
        api_store.healthy = False

        assert client.get("/health").json()["status"] == "degraded"


def test_lifespan_starts_and_stops_runtime(env_config, api_store):
    """Test that the managed lifespan runs the scheduler only while serving."""
    app_config = AppConfig(listener={"enabled": False})
    runtime = NotifierRuntime(app_config, env_config, store=api_store, gateway=RecordingGateway())

    with TestClient(create_app(runtime)) as client:
        assert runtime.scheduler.is_running()
        assert client.app.state.runtime is runtime

    assert not runtime.scheduler.is_running()
    assert not runtime.listener.is_running

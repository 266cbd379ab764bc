from __future__ import annotations

from datetime import datetime

import httpx
import pytest
from fastapi.testclient import TestClient

from servicewatch.api import create_app
from servicewatch.app import build_service
from servicewatch.config import ServiceWatchConfig


@pytest.fixture
def service():
    config = ServiceWatchConfig(
        environment="test",
        targets=[{"id": 1, "name": "Down", "url": "https://down.example"}],
        monitoring={"max_retries": 1, "retry_delay_seconds": 0},
        notifications={"console": False},
    )

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    svc = build_service(
        config,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        clock=lambda: datetime(2024, 1, 1, 10, 2),
    )
    svc.register_jobs()
    yield svc
    svc.stop()


def test_health_reports_scheduler_state(service) -> None:
    client = TestClient(create_app(service))
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["environment"] == "test"
    assert data["total_jobs"] == 2


def test_jobs_listing(service) -> None:
    client = TestClient(create_app(service))
    jobs = client.get("/jobs").json()["jobs"]
    assert {j["name"] for j in jobs} == {"MonitoringJob", "SSLCheckJob"}

    job = client.get("/jobs/MonitoringJob").json()
    assert job["schedule"] == "*/5 * * * *"
    assert job["next_run"] == "2024-01-01T10:05:00"
    assert client.get("/jobs/nope").status_code == 404


def test_incidents_and_status(service) -> None:
    service.monitoring_job.run_cycle()
    client = TestClient(create_app(service))

    data = client.get("/incidents").json()
    assert data["open"] == 1
    assert data["incidents"][0]["target_id"] == 1
    assert client.get("/incidents", params={"open_only": True}).json()["open"] == 1

    status = client.get("/status").json()
    assert status["uptime"]["down"] == 1
    assert status["tls"] == {}

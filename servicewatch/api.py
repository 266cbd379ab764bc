"""Read-only status API."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, HTTPException

from servicewatch import __version__
from servicewatch.app import ServiceWatch


logger = structlog.get_logger(__name__)


def create_app(service: ServiceWatch) -> FastAPI:
    app = FastAPI(title="ServiceWatch", version=__version__)

    @app.get("/")
    async def root():
        """List the available endpoints."""
        return {
            "service": "servicewatch",
            "version": __version__,
            "endpoints": ["/health", "/jobs", "/jobs/{name}", "/incidents", "/status"],
        }

    @app.get("/health")
    async def health():
        """Scheduler liveness."""
        healthy = service.runner.is_healthy()
        return {
            "status": "healthy" if healthy else "degraded",
            "environment": service.config.environment,
            **service.runner.stats(),
        }

    @app.get("/jobs")
    async def list_jobs():
        return {"jobs": service.runner.jobs()}

    @app.get("/jobs/{name}")
    async def get_job(name: str):
        scheduled = service.runner.get_job(name)
        if scheduled is None:
            raise HTTPException(status_code=404, detail=f"Job not found: {name}")
        return scheduled.snapshot()

    @app.get("/incidents")
    async def list_incidents(open_only: bool = False):
        incidents = service.repositories.incidents.list_incidents(open_only=open_only)
        return {
            "open": sum(1 for i in incidents if i.is_open),
            "incidents": [i.to_dict() for i in incidents],
        }

    @app.get("/status")
    async def status():
        """Outcome of the most recent monitoring and TLS cycles."""
        return {
            "uptime": service.monitoring_job.last_summary,
            "tls": service.tls_job.last_summary,
        }

    return app

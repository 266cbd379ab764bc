"""Builds the monitoring service from configuration."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

import httpx
import structlog

from servicewatch.config import ServiceWatchConfig
from servicewatch.incidents.coordinator import IncidentCoordinator
from servicewatch.jobs.monitoring_job import MonitoringJob
from servicewatch.jobs.tls_check_job import TlsCheckJob
from servicewatch.notifications.dispatcher import CompositeNotifier, LoggingNotifier, TelegramNotifier
from servicewatch.probes.models import Target
from servicewatch.probes.runner import ProbeRunner
from servicewatch.probes.tls import TlsProbe
from servicewatch.probes.uptime import UptimeProbe
from servicewatch.repositories.base import (
    IncidentRepository,
    TargetRepository,
    TlsResultRepository,
    UptimeResultRepository,
)
from servicewatch.repositories.memory import (
    InMemoryIncidentRepository,
    InMemoryTargetRepository,
    InMemoryTlsResultRepository,
    InMemoryUptimeResultRepository,
)
from servicewatch.repositories.sqlite import (
    SqliteDatabase,
    SqliteIncidentRepository,
    SqliteTargetRepository,
    SqliteTlsResultRepository,
    SqliteUptimeResultRepository,
)
from servicewatch.scheduler.job_runner import JobRunner


logger = structlog.get_logger(__name__)


@dataclass
class Repositories:
    targets: TargetRepository
    uptime_results: UptimeResultRepository
    tls_results: TlsResultRepository
    incidents: IncidentRepository


@dataclass
class ServiceWatch:
    """The wired monitoring service."""

    config: ServiceWatchConfig
    http_client: httpx.Client
    repositories: Repositories
    probe_runner: ProbeRunner
    coordinator: IncidentCoordinator
    notifier: CompositeNotifier
    runner: JobRunner
    monitoring_job: MonitoringJob
    tls_job: TlsCheckJob
    owns_http_client: bool = field(default=True)

    def register_jobs(self) -> None:
        settings = self.config.monitoring
        self.runner.schedule(self.monitoring_job, settings.uptime_schedule)
        self.runner.schedule(self.tls_job, settings.tls_schedule)

    def start(self) -> None:
        self.runner.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop within ``timeout`` seconds (default: the scheduler shutdown timeout)."""
        if timeout is None:
            timeout = self.config.scheduler.shutdown_timeout_seconds
        deadline = time.monotonic() + timeout
        self.runner.stop(timeout=timeout)
        self.probe_runner.close(timeout=max(0.0, deadline - time.monotonic()))
        if self.owns_http_client:
            self.http_client.close()
        logger.info("Service stopped")


def build_repositories(config: ServiceWatchConfig) -> Repositories:
    targets = [
        Target(id=t.id, name=t.name, url=t.url, active=t.active, headers=dict(t.headers))
        for t in config.targets
    ]

    if not config.database_path:
        logger.info("No database configured, keeping state in memory", targets=len(targets))
        return Repositories(
            targets=InMemoryTargetRepository(targets),
            uptime_results=InMemoryUptimeResultRepository(),
            tls_results=InMemoryTlsResultRepository(),
            incidents=InMemoryIncidentRepository(),
        )

    db = SqliteDatabase(config.database_path)
    target_repo = SqliteTargetRepository(db)
    for target in targets:
        target_repo.upsert(target)
    logger.info("Using SQLite database", path=config.database_path, seeded_targets=len(targets))
    return Repositories(
        targets=target_repo,
        uptime_results=SqliteUptimeResultRepository(db),
        tls_results=SqliteTlsResultRepository(db),
        incidents=SqliteIncidentRepository(db),
    )


def build_notifier(config: ServiceWatchConfig, http_client: httpx.Client) -> CompositeNotifier:
    settings = config.notifications
    notifier = CompositeNotifier()
    if settings.console:
        notifier.add(LoggingNotifier())
    if settings.telegram_bot_token and settings.telegram_chat_id:
        notifier.add(TelegramNotifier(http_client, settings.telegram_bot_token, settings.telegram_chat_id))
        logger.info("Telegram notifications enabled")
    else:
        logger.info("Telegram bot token not configured")
    return notifier


def build_service(
    config: ServiceWatchConfig,
    http_client: Optional[httpx.Client] = None,
    repositories: Optional[Repositories] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> ServiceWatch:
    owns_client = http_client is None
    if http_client is None:
        http_client = httpx.Client()

    settings = config.monitoring
    repositories = repositories or build_repositories(config)

    probe_runner = ProbeRunner(
        UptimeProbe(
            http_client,
            timeout_seconds=settings.timeout_seconds,
            max_retries=settings.max_retries,
            retry_delay_seconds=settings.retry_delay_seconds,
            user_agent=settings.user_agent,
        ),
        TlsProbe(timeout_seconds=settings.timeout_seconds),
        pool_size=settings.probe_pool_size,
    )
    coordinator = IncidentCoordinator(repositories.incidents)
    notifier = build_notifier(config, http_client)

    monitoring_job = MonitoringJob(
        probe_runner,
        repositories.targets,
        coordinator,
        notifier,
        results=repositories.uptime_results,
        down_status_codes=settings.down_status_codes,
    )
    tls_job = TlsCheckJob(
        probe_runner,
        repositories.targets,
        notifier=notifier,
        results=repositories.tls_results,
        expiry_threshold_days=settings.tls_expiry_threshold_days,
    )
    runner = JobRunner(
        worker_pool_size=config.scheduler.worker_pool_size,
        tick_interval_seconds=config.scheduler.tick_interval_seconds,
        shutdown_timeout_seconds=config.scheduler.shutdown_timeout_seconds,
        allow_overlap=config.scheduler.allow_overlap,
        clock=clock,
    )

    return ServiceWatch(
        config=config,
        http_client=http_client,
        repositories=repositories,
        probe_runner=probe_runner,
        coordinator=coordinator,
        notifier=notifier,
        runner=runner,
        monitoring_job=monitoring_job,
        tls_job=tls_job,
        owns_http_client=owns_client,
    )

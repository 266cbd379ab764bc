from __future__ import annotations

import time
from typing import Callable

import httpx
import structlog

from servicewatch.probes.models import Target, UptimeProbeResult


logger = structlog.get_logger(__name__)


def describe_request_error(exc: Exception) -> str:
    if isinstance(exc, httpx.TimeoutException):
        kind = "timeout"
    elif isinstance(exc, httpx.ConnectError):
        kind = "connect_error"
    else:
        kind = "http_error"
    return f"{kind}: {type(exc).__name__}: {exc}"


class UptimeProbe:
    """HTTP GET liveness check.

    Any response obtained within the timeout counts as UP, whatever its status
    code. Only failing to get a response (timeout, refused connection, DNS)
    is DOWN. Network failures are retried up to ``max_retries`` attempts.
    """

    def __init__(
        self,
        client: httpx.Client,
        timeout_seconds: float = 10.0,
        max_retries: int = 1,
        retry_delay_seconds: float = 0.0,
        user_agent: str = "servicewatch",
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.timeout_seconds = float(timeout_seconds)
        self.max_retries = max(1, int(max_retries))
        self.retry_delay_seconds = float(retry_delay_seconds)
        self.user_agent = user_agent
        self.sleep = sleep

    def check(self, target: Target) -> UptimeProbeResult:
        last_error = "unknown error"
        for attempt in range(1, self.max_retries + 1):
            started = time.perf_counter()
            try:
                resp = self.client.get(
                    target.url,
                    headers={"User-Agent": self.user_agent, **(target.headers or {})},
                    timeout=self.timeout_seconds,
                    follow_redirects=True,
                )
            except httpx.RequestError as e:
                last_error = describe_request_error(e)
                if attempt < self.max_retries:
                    logger.warning(
                        "Uptime check failed, retrying",
                        target=target.name,
                        attempt=attempt,
                        max_retries=self.max_retries,
                        error=last_error,
                    )
                    self.sleep(self.retry_delay_seconds)
                continue

            elapsed_ms = round((time.perf_counter() - started) * 1000.0, 3)
            logger.debug(
                "Service UP",
                target=target.name,
                status_code=resp.status_code,
                response_time_ms=elapsed_ms,
            )
            return UptimeProbeResult.up(target.id, elapsed_ms, resp.status_code)

        logger.warning("Service DOWN", target=target.name, url=target.url, error=last_error)
        return UptimeProbeResult.down(target.id, last_error)

"""Concurrent batch execution of uptime and TLS probes."""

from __future__ import annotations

import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, wait
from typing import Callable, Optional, TypeVar

import structlog

from servicewatch.probes.models import Target, TlsProbeResult, UptimeProbeResult
from servicewatch.probes.tls import TlsProbe, tls_host_port_from_url
from servicewatch.probes.uptime import UptimeProbe


logger = structlog.get_logger(__name__)

R = TypeVar("R")


class ProbeRunner:
    """Runs probes for many targets at once on a bounded pool.

    Each target is probed in isolation: an unexpected error while probing one
    target becomes a DOWN (or error) result for that target only.
    """

    def __init__(self, uptime_probe: UptimeProbe, tls_probe: TlsProbe, pool_size: int = 20):
        self.uptime_probe = uptime_probe
        self.tls_probe = tls_probe
        self.pool_size = max(1, int(pool_size))
        self._executor: Optional[ThreadPoolExecutor] = None
        self._futures: set[Future] = set()
        self._closed = False
        self._lock = threading.Lock()

    def _submit_all(self, fn: Callable[[Target], R], targets: list[Target]) -> list[R]:
        with self._lock:
            if self._closed:
                raise RuntimeError("Probe runner is closed")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.pool_size, thread_name_prefix="ProbeWorker"
                )
            futures = [self._executor.submit(fn, t) for t in targets]
            self._futures.update(futures)
        for future in futures:
            future.add_done_callback(self._forget_future)
        try:
            return [f.result() for f in futures]
        except CancelledError as e:
            raise RuntimeError("Probe batch cancelled by shutdown") from e

    def _forget_future(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def check_uptime(self, target: Target) -> UptimeProbeResult:
        try:
            return self.uptime_probe.check(target)
        except Exception as e:
            logger.error("Uptime probe crashed", target=target.name, error=str(e))
            return UptimeProbeResult.down(target.id, f"probe_error: {type(e).__name__}: {e}")

    def check_tls(self, target: Target) -> TlsProbeResult | None:
        try:
            return self.tls_probe.check(target)
        except Exception as e:
            logger.error("TLS probe crashed", target=target.name, error=str(e))
            endpoint = tls_host_port_from_url(target.url) or ("", 443)
            return TlsProbeResult(
                target_id=target.id,
                host=endpoint[0],
                port=endpoint[1],
                error=f"probe_error: {type(e).__name__}: {e}",
            )

    def check_uptime_batch(self, targets: list[Target]) -> list[UptimeProbeResult]:
        if not targets:
            return []
        logger.info("Starting batch uptime check", targets=len(targets))

        results = self._submit_all(self.check_uptime, targets)

        logger.info(
            "Batch uptime check completed",
            up=sum(1 for r in results if r.is_up),
            total=len(results),
        )
        return results

    def check_tls_batch(self, targets: list[Target]) -> list[TlsProbeResult]:
        secure = [t for t in targets if t.is_secure]
        if not secure:
            return []
        logger.info("Starting batch TLS check", targets=len(secure))

        results = [r for r in self._submit_all(self.check_tls, secure) if r is not None]

        logger.info(
            "Batch TLS check completed",
            valid=sum(1 for r in results if r.ok),
            total=len(results),
        )
        return results

    def close(self, timeout: Optional[float] = None) -> None:
        """Wait up to ``timeout`` seconds for running probes, then cancel the rest.

        ``None`` waits without limit. Batches submitted after close fail.
        """
        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None
            pending = set(self._futures)
        if executor is None:
            return

        if pending:
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                logger.warning("Abandoning probes still running after timeout", count=len(not_done))
        executor.shutdown(wait=False, cancel_futures=True)

"""Tick loop and worker pool that run scheduled jobs."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Set

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .jobs import DISPATCH, SKIPPED, Job, ScheduledJob
from .schedule import CronSchedule


logger = structlog.get_logger(__name__)


class JobRunner:
    """Evaluates registered jobs once per tick and runs the due ones.

    APScheduler drives the tick at a fixed interval with a single instance, so
    ticks never overlap. Due jobs are submitted to a fixed-size thread pool and
    the tick moves on without waiting for them.
    """

    def __init__(
        self,
        worker_pool_size: int = 5,
        tick_interval_seconds: float = 60.0,
        shutdown_timeout_seconds: float = 10.0,
        allow_overlap: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.worker_pool_size = max(1, int(worker_pool_size))
        self.tick_interval_seconds = float(tick_interval_seconds)
        self.shutdown_timeout_seconds = float(shutdown_timeout_seconds)
        self.allow_overlap = allow_overlap
        self.clock = clock

        self._jobs: List[ScheduledJob] = []
        self._jobs_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._futures: Set[Future] = set()
        self._futures_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._scheduler: Optional[BackgroundScheduler] = None
        self._stopped = False
        self.running = False
        self.tick_count = 0

    def schedule(self, job: Job, expression: str) -> Optional[ScheduledJob]:
        """Register ``job`` on ``expression``.

        Disabled jobs are not registered and ``None`` is returned. The enabled
        flag is only read here; later changes need a new registration.
        Raises InvalidScheduleError for malformed expressions.
        """
        if not job.enabled:
            logger.info("Job is disabled, not scheduling", job=job.name)
            return None

        scheduled = ScheduledJob(job, CronSchedule(expression), registered_at=self.clock())
        with self._jobs_lock:
            self._jobs.append(scheduled)

        logger.info(
            "Scheduled job",
            job=job.name,
            schedule=expression,
            next_run=scheduled.next_run_time.isoformat(),
        )
        return scheduled

    def start(self) -> None:
        if self.running:
            logger.warning("Job runner already running")
            return

        self._stopped = False
        self._executor = ThreadPoolExecutor(
            max_workers=self.worker_pool_size, thread_name_prefix="JobWorker"
        )
        self._scheduler = BackgroundScheduler(daemon=True)
        self._scheduler.add_job(
            self._scheduled_tick,
            IntervalTrigger(seconds=self.tick_interval_seconds),
            id="tick",
            name="JobRunner tick",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(),
        )
        self._scheduler.start()
        self.running = True

        logger.info(
            "Job runner started",
            jobs=len(self._jobs),
            workers=self.worker_pool_size,
            tick_interval_seconds=self.tick_interval_seconds,
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop ticking, drain in-flight work, then cancel what is left.

        Once stopped the runner refuses new dispatches until started again.
        """
        self._stopped = True
        if not self.running and self._executor is None:
            return

        timeout = self.shutdown_timeout_seconds if timeout is None else float(timeout)
        self.running = False
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        with self._futures_lock:
            pending = set(self._futures)
        if pending:
            logger.info("Waiting for in-flight jobs", count=len(pending), timeout_seconds=timeout)
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                logger.warning("Cancelling jobs still in flight after timeout", count=len(not_done))

        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

        logger.info("Job runner stopped", ticks=self.tick_count)

    def _scheduled_tick(self) -> None:
        try:
            self.tick()
        except Exception as e:
            logger.error("Scheduler tick failed", error=str(e))

    def tick(self, now: Optional[datetime] = None) -> List[str]:
        """Run one scheduling pass and return the names of dispatched jobs."""
        with self._tick_lock:
            now = now or self.clock()
            self.tick_count += 1
            logger.debug("Checking scheduled jobs", now=now.isoformat())

            with self._jobs_lock:
                jobs = list(self._jobs)

            dispatched = []
            for scheduled in jobs:
                outcome = scheduled.try_start(now, self.allow_overlap)
                if outcome == DISPATCH:
                    if self._dispatch(scheduled):
                        dispatched.append(scheduled.name)
                elif outcome == SKIPPED:
                    logger.warning(
                        "Job still running from a previous tick, skipping",
                        job=scheduled.name,
                        next_run=scheduled.next_run_time.isoformat(),
                    )
            return dispatched

    def _dispatch(self, scheduled: ScheduledJob) -> bool:
        if self._stopped:
            scheduled.release()
            logger.warning("Job runner is stopped, not dispatching", job=scheduled.name)
            return False
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.worker_pool_size, thread_name_prefix="JobWorker"
            )

        logger.info("Executing job", job=scheduled.name)
        try:
            future = self._executor.submit(self._execute, scheduled)
        except RuntimeError as e:
            # Pool already shut down
            scheduled.release()
            logger.warning("Could not dispatch job", job=scheduled.name, error=str(e))
            return False
        with self._futures_lock:
            self._futures.add(future)
        future.add_done_callback(partial(self._forget_future, scheduled))
        return True

    def _forget_future(self, scheduled: ScheduledJob, future: Future) -> None:
        with self._futures_lock:
            self._futures.discard(future)
        if future.cancelled():
            # Cancelled before it ran, so no outcome will release the claim
            scheduled.release()

    def _execute(self, scheduled: ScheduledJob) -> None:
        started = time.perf_counter()
        try:
            scheduled.job.execute()
        except Exception as e:
            duration_ms = round((time.perf_counter() - started) * 1000.0, 3)
            error = str(e) or type(e).__name__
            scheduled.record_failure(self.clock(), duration_ms, error)
            logger.error(
                "Job failed",
                job=scheduled.name,
                duration_ms=duration_ms,
                error=error,
                next_run=scheduled.next_run_time.isoformat(),
            )
            return

        duration_ms = round((time.perf_counter() - started) * 1000.0, 3)
        scheduled.record_success(self.clock(), duration_ms)
        logger.info(
            "Job completed",
            job=scheduled.name,
            duration_ms=duration_ms,
            next_run=scheduled.next_run_time.isoformat(),
        )

    def run_now(self, name: str) -> bool:
        """Dispatch a registered job immediately, outside its schedule."""
        scheduled = self.get_job(name)
        if scheduled is None:
            logger.warning("Job not found", job=name)
            return False

        if not scheduled.claim(self.allow_overlap):
            logger.warning("Job already running, not dispatching", job=name)
            return False
        return self._dispatch(scheduled)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no job is in flight. Returns False on timeout."""
        with self._futures_lock:
            pending = set(self._futures)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def get_job(self, name: str) -> Optional[ScheduledJob]:
        with self._jobs_lock:
            for scheduled in self._jobs:
                if scheduled.name == name:
                    return scheduled
        return None

    def jobs(self) -> List[Dict[str, Any]]:
        with self._jobs_lock:
            jobs = list(self._jobs)
        return [scheduled.snapshot() for scheduled in jobs]

    def stats(self) -> Dict[str, Any]:
        snapshots = self.jobs()
        with self._futures_lock:
            in_flight = len(self._futures)
        return {
            "running": self.running,
            "total_jobs": len(snapshots),
            "total_executions": sum(s["execution_count"] for s in snapshots),
            "total_failures": sum(s["failure_count"] for s in snapshots),
            "in_flight": in_flight,
            "ticks": self.tick_count,
        }

    def is_healthy(self) -> bool:
        return (
            self.running
            and self._scheduler is not None
            and self._scheduler.running
            and self._executor is not None
        )

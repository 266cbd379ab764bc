"""Job descriptors and their scheduling bookkeeping."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .schedule import CronSchedule


DISPATCH = "dispatch"
SKIPPED = "skipped"
NOT_DUE = "not_due"

class Job(ABC):
    """A named unit of work run by the job runner.

    Subclasses set ``name``, ``description`` and ``enabled`` and implement
    :meth:`execute`. Raising from ``execute`` marks the run as failed.
    """

    name: str = ""
    description: str = ""
    enabled: bool = True

    @abstractmethod
    def execute(self) -> None:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} enabled={self.enabled}>"


class FunctionJob(Job):
    """Adapts a plain callable to the :class:`Job` contract."""

    def __init__(self, name: str, func: Callable[[], Any], description: str = "", enabled: bool = True):
        self.name = name
        self.func = func
        self.description = description or name
        self.enabled = enabled

    def execute(self) -> None:
        self.func()


class ScheduledJob:
    """Binds a job to its schedule and tracks execution history.

    Bookkeeping is written by worker threads; every mutation happens under
    ``self._lock`` and readers should use :meth:`snapshot`.
    """

    def __init__(self, job: Job, schedule: CronSchedule, registered_at: datetime):
        self.job = job
        self.schedule = schedule
        self.registered_at = registered_at
        self.next_run_time: datetime = schedule.next_due_time(registered_at)
        self.last_run_time: Optional[datetime] = None
        self.execution_count = 0
        self.failure_count = 0
        self.skipped_count = 0
        self.last_success_time: Optional[datetime] = None
        self.last_failure_time: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.last_duration_ms: Optional[float] = None
        self.in_flight = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.job.name

    def is_due(self, now: datetime) -> bool:
        with self._lock:
            return now >= self.next_run_time

    def try_start(self, now: datetime, allow_overlap: bool) -> str:
        """Claim a run if due. Returns DISPATCH, SKIPPED or NOT_DUE.

        A run skipped because the previous one is still in flight still
        advances the schedule, so it waits for its next natural slot.
        """
        with self._lock:
            if now < self.next_run_time:
                return NOT_DUE
            if self.in_flight and not allow_overlap:
                self.skipped_count += 1
                self.next_run_time = self.schedule.next_due_time(now)
                return SKIPPED
            self.in_flight += 1
            return DISPATCH

    def claim(self, allow_overlap: bool) -> bool:
        """Claim an out-of-schedule run."""
        with self._lock:
            if self.in_flight and not allow_overlap:
                return False
            self.in_flight += 1
            return True

    def release(self) -> None:
        """Give back a claim that never turned into a run."""
        with self._lock:
            self.in_flight = max(0, self.in_flight - 1)

    def record_success(self, finished_at: datetime, duration_ms: float) -> None:
        with self._lock:
            self._finish(finished_at, duration_ms)
            self.last_success_time = finished_at
            self.last_error = None

    def record_failure(self, finished_at: datetime, duration_ms: float, error: str) -> None:
        with self._lock:
            self._finish(finished_at, duration_ms)
            self.failure_count += 1
            self.last_failure_time = finished_at
            self.last_error = error

    def _finish(self, finished_at: datetime, duration_ms: float) -> None:
        self.in_flight = max(0, self.in_flight - 1)
        self.execution_count += 1
        self.last_run_time = finished_at
        self.last_duration_ms = duration_ms
        self.next_run_time = self.schedule.next_due_time(finished_at)

    def snapshot(self) -> Dict[str, Any]:
        """Point-in-time status for status queries."""
        with self._lock:
            return {
                "name": self.job.name,
                "description": self.job.description,
                "schedule": self.schedule.expression,
                "next_run": self.next_run_time.isoformat(),
                "last_run": self.last_run_time.isoformat() if self.last_run_time else None,
                "execution_count": self.execution_count,
                "failure_count": self.failure_count,
                "skipped_count": self.skipped_count,
                "last_success": self.last_success_time.isoformat() if self.last_success_time else None,
                "last_failure": self.last_failure_time.isoformat() if self.last_failure_time else None,
                "last_error": self.last_error,
                "last_duration_ms": self.last_duration_ms,
                "running": self.in_flight > 0,
            }

    def __repr__(self) -> str:
        return (
            f"ScheduledJob(job={self.job.name!r}, schedule={self.schedule.expression!r}, "
            f"next={self.next_run_time.isoformat()}, executions={self.execution_count})"
        )

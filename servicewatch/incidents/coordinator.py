"""Turns probe observations into incident open/resolve decisions."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

import structlog

from servicewatch.probes.models import ProbeStatus

if TYPE_CHECKING:
    from servicewatch.repositories.base import IncidentRepository


logger = structlog.get_logger(__name__)


class IncidentAction(str, Enum):
    OPENED = "opened"        # notify down
    UNCHANGED = "unchanged"  # still down, already alerted
    RESOLVED = "resolved"    # notify recovered
    NOOP = "noop"            # up and nothing open


@dataclass(frozen=True)
class IncidentDecision:
    target_id: int
    action: IncidentAction
    incident_id: Optional[int] = None

    @property
    def notify_down(self) -> bool:
        return self.action is IncidentAction.OPENED

    @property
    def notify_recovered(self) -> bool:
        return self.action is IncidentAction.RESOLVED


class IncidentCoordinator:
    """Keeps at most one open incident per target.

    The lookup and the open/resolve that follows it run under a per-target
    lock, so overlapping monitoring cycles cannot open duplicates.
    """

    def __init__(self, repository: IncidentRepository):
        self.repository = repository
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, target_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(target_id)
            if lock is None:
                lock = self._locks[target_id] = threading.Lock()
            return lock

    def evaluate(
        self, target_id: int, status: ProbeStatus, error_message: Optional[str] = None
    ) -> IncidentDecision:
        with self._lock_for(target_id):
            open_incident = self.repository.find_open(target_id)

            if ProbeStatus(status) is ProbeStatus.DOWN:
                if open_incident is not None:
                    return IncidentDecision(target_id, IncidentAction.UNCHANGED, open_incident)
                incident_id = self.repository.open(target_id, error_message)
                logger.warning(
                    "Opened incident", target_id=target_id, incident_id=incident_id, error=error_message
                )
                return IncidentDecision(target_id, IncidentAction.OPENED, incident_id)

            if open_incident is None:
                return IncidentDecision(target_id, IncidentAction.NOOP)
            self.repository.resolve(open_incident)
            logger.info("Resolved incident", target_id=target_id, incident_id=open_incident)
            return IncidentDecision(target_id, IncidentAction.RESOLVED, open_incident)

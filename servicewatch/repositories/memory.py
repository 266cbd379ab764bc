"""In-memory repositories, used when no database is configured and in tests."""

from __future__ import annotations

import itertools
import threading
from typing import Optional

from servicewatch.incidents.models import Incident
from servicewatch.probes.models import ProbeStatus, Target, TlsProbeResult, UptimeProbeResult, utcnow


class InMemoryTargetRepository:
    def __init__(self, targets: Optional[list[Target]] = None):
        self._targets: dict[int, Target] = {t.id: t for t in (targets or [])}
        self.statuses: dict[int, ProbeStatus] = {}
        self._lock = threading.Lock()

    def add(self, target: Target) -> None:
        with self._lock:
            self._targets[target.id] = target

    def list_active(self) -> list[Target]:
        with self._lock:
            return [t for t in self._targets.values() if t.active]

    def update_status(self, target_id: int, status: ProbeStatus) -> None:
        with self._lock:
            self.statuses[target_id] = status

    def get(self, target_id: int) -> Optional[Target]:
        with self._lock:
            return self._targets.get(target_id)


class InMemoryUptimeResultRepository:
    def __init__(self):
        self.results: list[UptimeProbeResult] = []
        self._lock = threading.Lock()

    def save(self, result: UptimeProbeResult) -> None:
        with self._lock:
            self.results.append(result)


class InMemoryTlsResultRepository:
    def __init__(self):
        self.results: list[TlsProbeResult] = []
        self._lock = threading.Lock()

    def save(self, result: TlsProbeResult) -> None:
        with self._lock:
            self.results.append(result)


class InMemoryIncidentRepository:
    def __init__(self):
        self._incidents: dict[int, Incident] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def find_open(self, target_id: int) -> Optional[int]:
        with self._lock:
            for incident in sorted(self._incidents.values(), key=lambda i: i.opened_at, reverse=True):
                if incident.target_id == target_id and incident.is_open:
                    return incident.id
        return None

    def open(self, target_id: int, error_message: Optional[str]) -> int:
        with self._lock:
            for incident in self._incidents.values():
                if incident.target_id == target_id and incident.is_open:
                    return incident.id
            incident = Incident(
                id=next(self._ids),
                target_id=target_id,
                opened_at=utcnow(),
                error_message=error_message,
            )
            self._incidents[incident.id] = incident
            return incident.id

    def resolve(self, incident_id: int) -> None:
        with self._lock:
            incident = self._incidents.get(incident_id)
            if incident is not None and incident.is_open:
                incident.resolved_at = utcnow()

    def list_incidents(self, open_only: bool = False) -> list[Incident]:
        with self._lock:
            incidents = list(self._incidents.values())
        if open_only:
            incidents = [i for i in incidents if i.is_open]
        return sorted(incidents, key=lambda i: i.id)

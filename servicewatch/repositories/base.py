"""Persistence contracts consumed by the monitoring engine."""

from __future__ import annotations

from typing import Optional, Protocol

from servicewatch.incidents.models import Incident
from servicewatch.probes.models import ProbeStatus, Target, TlsProbeResult, UptimeProbeResult


class TargetRepository(Protocol):
    def list_active(self) -> list[Target]:
        ...

    def update_status(self, target_id: int, status: ProbeStatus) -> None:
        ...


class UptimeResultRepository(Protocol):
    def save(self, result: UptimeProbeResult) -> None:
        ...


class TlsResultRepository(Protocol):
    def save(self, result: TlsProbeResult) -> None:
        ...


class IncidentRepository(Protocol):
    def find_open(self, target_id: int) -> Optional[int]:
        ...

    def open(self, target_id: int, error_message: Optional[str]) -> int:
        ...

    def resolve(self, incident_id: int) -> None:
        ...

    def list_incidents(self, open_only: bool = False) -> list[Incident]:
        ...

"""Uptime monitoring job: probe, record, open and resolve incidents, alert."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

import structlog

from servicewatch.incidents.coordinator import IncidentCoordinator, IncidentDecision
from servicewatch.notifications.dispatcher import Notifier
from servicewatch.notifications.templates import SERVICE_DOWN, SERVICE_RECOVERED
from servicewatch.probes.models import ProbeStatus, Target, UptimeProbeResult
from servicewatch.probes.runner import ProbeRunner
from servicewatch.repositories.base import TargetRepository, UptimeResultRepository
from servicewatch.scheduler.jobs import Job


logger = structlog.get_logger(__name__)


def apply_down_status_codes(result: UptimeProbeResult, down_status_codes: Iterable[int]) -> UptimeProbeResult:
    """Reclassify a response whose status code is configured as DOWN."""
    codes = set(down_status_codes or ())
    if not result.is_up or result.status_code not in codes:
        return result
    return replace(
        result,
        status=ProbeStatus.DOWN,
        response_time_ms=None,
        error_message=f"HTTP {result.status_code}",
    )


class MonitoringJob(Job):
    """Checks every active target and turns state changes into alerts."""

    name = "MonitoringJob"
    description = "Monitors service uptime and sends alerts"

    def __init__(
        self,
        probe_runner: ProbeRunner,
        targets: TargetRepository,
        coordinator: IncidentCoordinator,
        notifier: Notifier,
        results: Optional[UptimeResultRepository] = None,
        down_status_codes: Optional[List[int]] = None,
        enabled: bool = True,
    ):
        self.probe_runner = probe_runner
        self.targets = targets
        self.coordinator = coordinator
        self.notifier = notifier
        self.results = results
        self.down_status_codes = list(down_status_codes or [])
        self.enabled = enabled
        self.last_summary: Dict[str, Any] = {}

    def execute(self) -> None:
        self.run_cycle()

    def run_cycle(self) -> Dict[str, Any]:
        targets = self.targets.list_active()
        logger.info("Starting monitoring cycle", targets=len(targets))

        by_id = {t.id: t for t in targets}
        results = [
            apply_down_status_codes(r, self.down_status_codes)
            for r in self.probe_runner.check_uptime_batch(targets)
        ]

        decisions: List[IncidentDecision] = []
        for result in results:
            self._record(result)
            decision = self._evaluate(result)
            if decision is None:
                continue
            decisions.append(decision)
            target = by_id.get(result.target_id)
            if target is not None:
                self._alert(target, result, decision)

        summary = {
            "total": len(results),
            "up": sum(1 for r in results if r.is_up),
            "down": sum(1 for r in results if not r.is_up),
            "opened": [d.incident_id for d in decisions if d.notify_down],
            "resolved": [d.incident_id for d in decisions if d.notify_recovered],
            "results": [r.to_dict() for r in results],
        }
        self.last_summary = summary
        logger.info(
            "Monitoring cycle completed",
            up=summary["up"],
            total=summary["total"],
            opened=len(summary["opened"]),
            resolved=len(summary["resolved"]),
        )
        return summary

    def _record(self, result: UptimeProbeResult) -> None:
        # Best effort: a failed write must not block incident evaluation
        if self.results is not None:
            try:
                self.results.save(result)
            except Exception as e:
                logger.error("Failed to save uptime result", target_id=result.target_id, error=str(e))
        try:
            self.targets.update_status(result.target_id, result.status)
        except Exception as e:
            logger.error("Failed to update target status", target_id=result.target_id, error=str(e))

    def _evaluate(self, result: UptimeProbeResult) -> Optional[IncidentDecision]:
        try:
            return self.coordinator.evaluate(result.target_id, result.status, result.error_message)
        except Exception as e:
            logger.error("Incident evaluation failed", target_id=result.target_id, error=str(e))
            return None

    def _alert(self, target: Target, result: UptimeProbeResult, decision: IncidentDecision) -> None:
        if decision.notify_down:
            event_type = SERVICE_DOWN
            variables = {
                "service_name": target.name,
                "service_url": target.url,
                "down_time": result.checked_at.isoformat(),
                "error_message": result.error_message or "Unknown",
                "http_code": str(result.status_code) if result.status_code is not None else "N/A",
                "incident_id": str(decision.incident_id),
            }
        elif decision.notify_recovered:
            event_type = SERVICE_RECOVERED
            variables = {
                "service_name": target.name,
                "service_url": target.url,
                "recovered_time": result.checked_at.isoformat(),
                "response_time_ms": str(result.response_time_ms) if result.response_time_ms is not None else "",
                "incident_id": str(decision.incident_id),
            }
        else:
            return

        try:
            self.notifier.notify(event_type, target.id, variables)
            logger.info("Sent alert", event_type=event_type, target=target.name)
        except Exception as e:
            logger.error("Failed to send alert", event_type=event_type, target=target.name, error=str(e))

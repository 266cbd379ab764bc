"""TLS certificate expiry job."""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional

import structlog

from servicewatch.notifications.dispatcher import Notifier
from servicewatch.notifications.templates import SSL_EXPIRING
from servicewatch.probes.runner import ProbeRunner
from servicewatch.repositories.base import TargetRepository, TlsResultRepository
from servicewatch.scheduler.jobs import Job


logger = structlog.get_logger(__name__)


class TlsCheckJob(Job):
    """Checks certificates of https targets and warns before they expire.

    An expiring certificate is a warning, not an incident. Each certificate
    (target plus expiry date) is alerted once.
    """

    name = "SSLCheckJob"
    description = "Checks SSL certificates for HTTPS services"

    def __init__(
        self,
        probe_runner: ProbeRunner,
        targets: TargetRepository,
        notifier: Optional[Notifier] = None,
        results: Optional[TlsResultRepository] = None,
        expiry_threshold_days: int = 30,
        enabled: bool = True,
    ):
        self.probe_runner = probe_runner
        self.targets = targets
        self.notifier = notifier
        self.results = results
        self.expiry_threshold_days = int(expiry_threshold_days)
        self.enabled = enabled
        self.last_summary: Dict[str, Any] = {}
        self._alerted: Dict[int, str] = {}
        self._alerted_lock = threading.Lock()

    def execute(self) -> None:
        self.run_cycle()

    def run_cycle(self) -> Dict[str, Any]:
        targets = self.targets.list_active()
        by_id = {t.id: t for t in targets}
        results = self.probe_runner.check_tls_batch(targets)

        expiring = []
        for result in results:
            if self.results is not None:
                try:
                    self.results.save(result)
                except Exception as e:
                    logger.error("Failed to save TLS result", target_id=result.target_id, error=str(e))

            if not result.expiring_within(self.expiry_threshold_days):
                continue
            expiring.append(result)
            target = by_id.get(result.target_id)
            logger.warning(
                "TLS certificate expires soon",
                target=target.name if target else result.target_id,
                days_remaining=result.days_remaining,
                threshold_days=self.expiry_threshold_days,
            )
            if target is not None:
                self._alert_once(target, result)

        summary = {
            "checked": len(results),
            "valid": sum(1 for r in results if r.ok),
            "expiring": [r.target_id for r in expiring],
            "results": [r.to_dict() for r in results],
        }
        self.last_summary = summary
        logger.info(
            "SSL check job completed",
            checked=summary["checked"],
            https_targets=sum(1 for t in targets if t.is_secure),
            expiring=len(expiring),
        )
        return summary

    def _alert_once(self, target, result) -> None:
        if self.notifier is None:
            return
        expiry_key = result.not_after.isoformat() if result.not_after else ""
        with self._alerted_lock:
            if self._alerted.get(target.id) == expiry_key:
                return

        variables = {
            "service_name": target.name,
            "domain": result.host,
            "days_remaining": str(result.days_remaining),
            "threshold_days": str(self.expiry_threshold_days),
            "expiry_date": expiry_key or "unknown",
        }
        try:
            delivered = self.notifier.notify(SSL_EXPIRING, target.id, variables)
        except Exception as e:
            logger.error("Failed to send TLS expiry alert", target=target.name, error=str(e))
            return

        if not delivered:
            logger.warning("TLS expiry alert not delivered, retrying next cycle", target=target.name)
            return
        with self._alerted_lock:
            self._alerted[target.id] = expiry_key

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlsplit


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProbeStatus(str, Enum):
    UP = "UP"
    DOWN = "DOWN"


@dataclass(frozen=True)
class Target:
    id: int
    name: str
    url: str
    active: bool = True
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_secure(self) -> bool:
        return (urlsplit(self.url).scheme or "").lower() == "https"


@dataclass(frozen=True)
class UptimeProbeResult:
    target_id: int
    status: ProbeStatus
    response_time_ms: float | None = None
    status_code: int | None = None
    error_message: str | None = None
    checked_at: datetime = field(default_factory=utcnow)

    @property
    def is_up(self) -> bool:
        return self.status is ProbeStatus.UP

    @classmethod
    def up(cls, target_id: int, response_time_ms: float, status_code: int) -> UptimeProbeResult:
        return cls(
            target_id=target_id,
            status=ProbeStatus.UP,
            response_time_ms=response_time_ms,
            status_code=status_code,
        )

    @classmethod
    def down(
        cls, target_id: int, error_message: str, status_code: int | None = None
    ) -> UptimeProbeResult:
        return cls(
            target_id=target_id,
            status=ProbeStatus.DOWN,
            status_code=status_code,
            error_message=error_message,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_id": self.target_id,
            "status": self.status.value,
            "response_time_ms": self.response_time_ms,
            "status_code": self.status_code,
            "error_message": self.error_message,
            "checked_at": self.checked_at.isoformat(),
        }


@dataclass(frozen=True)
class TlsProbeResult:
    target_id: int
    host: str
    port: int
    days_remaining: int | None = None
    not_before: datetime | None = None
    not_after: datetime | None = None
    issuer: str | None = None
    subject: str | None = None
    serial_number: str | None = None
    self_signed: bool = False
    error: str | None = None
    checked_at: datetime = field(default_factory=utcnow)

    @property
    def ok(self) -> bool:
        return self.error is None and self.days_remaining is not None

    def expiring_within(self, threshold_days: int) -> bool:
        """Soft signal: a valid certificate with fewer than ``threshold_days`` left."""
        if self.days_remaining is None:
            return False
        return 0 <= self.days_remaining < int(threshold_days)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_id": self.target_id,
            "host": self.host,
            "port": self.port,
            "days_remaining": self.days_remaining,
            "not_before": self.not_before.isoformat() if self.not_before else None,
            "not_after": self.not_after.isoformat() if self.not_after else None,
            "issuer": self.issuer,
            "subject": self.subject,
            "serial_number": self.serial_number,
            "self_signed": self.self_signed,
            "error": self.error,
            "checked_at": self.checked_at.isoformat(),
        }

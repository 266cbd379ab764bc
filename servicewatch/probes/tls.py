from __future__ import annotations

import socket
import ssl
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit

import structlog

from servicewatch.errors import ProbeError
from servicewatch.probes.models import Target, TlsProbeResult, utcnow


logger = structlog.get_logger(__name__)


def tls_host_port_from_url(url: str) -> tuple[str, int] | None:
    try:
        parts = urlsplit(str(url or "").strip())
    except ValueError:
        return None
    if (parts.scheme or "").lower() != "https":
        return None
    host = (parts.hostname or "").strip()
    if not host:
        return None
    return host, int(parts.port or 443)


def parse_cert_time(value: Any) -> datetime | None:
    # ssl.getpeercert() returns e.g. "Feb  6 12:00:00 2026 GMT"
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.strptime(value.strip(), "%b %d %H:%M:%S %Y %Z")
    except ValueError:
        return None
    return dt.replace(tzinfo=timezone.utc)


def format_name(rdns: Any) -> str | None:
    # getpeercert() names are tuples of RDNs: ((("commonName", "x"),), ...)
    if not rdns:
        return None
    parts = []
    for rdn in rdns:
        for key, value in rdn:
            parts.append(f"{key}={value}")
    return ", ".join(parts) or None


def days_between(now: datetime, not_after: datetime) -> int:
    return (not_after - now).days


def build_tls_result(
    target: Target, host: str, port: int, cert: dict[str, Any], now: datetime | None = None
) -> TlsProbeResult:
    now = now or utcnow()
    not_after = parse_cert_time(cert.get("notAfter"))
    if not_after is None:
        return TlsProbeResult(
            target_id=target.id,
            host=host,
            port=port,
            error="missing_notAfter",
            checked_at=now,
        )

    issuer = format_name(cert.get("issuer"))
    subject = format_name(cert.get("subject"))
    return TlsProbeResult(
        target_id=target.id,
        host=host,
        port=port,
        days_remaining=days_between(now, not_after),
        not_before=parse_cert_time(cert.get("notBefore")),
        not_after=not_after,
        issuer=issuer,
        subject=subject,
        serial_number=cert.get("serialNumber"),
        self_signed=issuer is not None and issuer == subject,
        checked_at=now,
    )


class TlsProbe:
    """Fetches the peer certificate of https targets and reports its expiry."""

    def __init__(self, timeout_seconds: float = 10.0):
        self.timeout_seconds = float(timeout_seconds)

    def fetch_peer_cert(self, host: str, port: int) -> dict[str, Any]:
        ctx = ssl.create_default_context()
        ctx.check_hostname = True
        ctx.verify_mode = ssl.CERT_REQUIRED

        with socket.create_connection((host, port), timeout=self.timeout_seconds) as sock:
            with ctx.wrap_socket(sock, server_hostname=host) as tls_sock:
                cert = tls_sock.getpeercert()
        if not cert:
            raise ProbeError(f"No peer certificate from {host}:{port}")
        return cert

    def check(self, target: Target) -> TlsProbeResult | None:
        """Return the certificate result, or None for non-https targets."""
        endpoint = tls_host_port_from_url(target.url)
        if endpoint is None:
            logger.debug("Skipping TLS check for non-https target", target=target.name)
            return None
        host, port = endpoint

        try:
            cert = self.fetch_peer_cert(host, port)
        except (OSError, ssl.SSLError, ValueError, ProbeError) as e:
            error = f"{type(e).__name__}: {e}"
            logger.warning("TLS check failed", target=target.name, host=host, port=port, error=error)
            return TlsProbeResult(target_id=target.id, host=host, port=port, error=error)

        result = build_tls_result(target, host, port, cert)
        logger.debug(
            "TLS certificate checked",
            target=target.name,
            days_remaining=result.days_remaining,
            not_after=result.not_after.isoformat() if result.not_after else None,
        )
        return result

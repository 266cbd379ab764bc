"""Uptime and TLS certificate probes."""

from .models import ProbeStatus, Target, TlsProbeResult, UptimeProbeResult
from .runner import ProbeRunner
from .tls import TlsProbe
from .uptime import UptimeProbe

__all__ = [
    "ProbeRunner",
    "ProbeStatus",
    "Target",
    "TlsProbe",
    "TlsProbeResult",
    "UptimeProbe",
    "UptimeProbeResult",
]

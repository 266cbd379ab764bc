"""Built-in monitoring jobs."""

from .monitoring_job import MonitoringJob
from .tls_check_job import TlsCheckJob

__all__ = ["MonitoringJob", "TlsCheckJob"]

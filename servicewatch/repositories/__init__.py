"""Repository contracts and their in-memory and SQLite implementations."""

from .base import IncidentRepository, TargetRepository, TlsResultRepository, UptimeResultRepository
from .memory import (
    InMemoryIncidentRepository,
    InMemoryTargetRepository,
    InMemoryTlsResultRepository,
    InMemoryUptimeResultRepository,
)
from .sqlite import (
    SqliteDatabase,
    SqliteIncidentRepository,
    SqliteTargetRepository,
    SqliteTlsResultRepository,
    SqliteUptimeResultRepository,
)

__all__ = [
    "InMemoryIncidentRepository",
    "InMemoryTargetRepository",
    "InMemoryTlsResultRepository",
    "InMemoryUptimeResultRepository",
    "IncidentRepository",
    "SqliteDatabase",
    "SqliteIncidentRepository",
    "SqliteTargetRepository",
    "SqliteTlsResultRepository",
    "SqliteUptimeResultRepository",
    "TargetRepository",
    "TlsResultRepository",
    "UptimeResultRepository",
]

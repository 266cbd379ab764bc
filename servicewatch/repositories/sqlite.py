from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from servicewatch.errors import RepositoryError
from servicewatch.incidents.models import Incident
from servicewatch.probes.models import ProbeStatus, Target, TlsProbeResult, UptimeProbeResult, utcnow


logger = structlog.get_logger(__name__)

SCHEMA_VERSION = 1


def _ts(value: datetime | None) -> float | None:
    return value.timestamp() if value is not None else None


def _dt(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def _connect(path: str) -> sqlite3.Connection:
    p = str(path or "").strip()
    if not p:
        raise ValueError("Missing database path")
    Path(p).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(p, timeout=30, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA busy_timeout = 5000;")
    conn.execute("PRAGMA journal_mode = WAL;")
    return conn


class SqliteDatabase:
    """Owns the SQLite file and its schema."""

    def __init__(self, path: str):
        self.path = path
        self.ensure_schema()

    def connect(self) -> sqlite3.Connection:
        try:
            return _connect(self.path)
        except sqlite3.Error as e:
            raise RepositoryError(f"Cannot open database {self.path}: {e}") from e

    def ensure_schema(self) -> None:
        conn = self.connect()
        try:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_meta (k TEXT PRIMARY KEY, v TEXT NOT NULL);")
            row = conn.execute("SELECT v FROM schema_meta WHERE k='version'").fetchone()
            cur = int(row["v"]) if row and row["v"] else 0
            if cur >= SCHEMA_VERSION:
                return
            _apply_v1(conn)
            conn.execute(
                "INSERT OR REPLACE INTO schema_meta (k, v) VALUES ('version', ?)", (str(SCHEMA_VERSION),)
            )
        finally:
            conn.close()


def _apply_v1(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS services (
          service_id INTEGER PRIMARY KEY,
          name TEXT NOT NULL,
          url TEXT NOT NULL,
          is_active INTEGER NOT NULL DEFAULT 1,
          headers_json TEXT,
          current_status TEXT,
          last_checked_at_ts REAL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS uptime_checks (
          check_id INTEGER PRIMARY KEY AUTOINCREMENT,
          service_id INTEGER NOT NULL,
          status TEXT NOT NULL,
          response_time_ms REAL,
          http_code INTEGER,
          error_message TEXT,
          checked_at_ts REAL NOT NULL
        );
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_uptime_checks_service ON uptime_checks(service_id, checked_at_ts);"
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS ssl_checks (
          ssl_check_id INTEGER PRIMARY KEY AUTOINCREMENT,
          service_id INTEGER NOT NULL,
          domain TEXT NOT NULL,
          port INTEGER NOT NULL,
          days_remaining INTEGER,
          valid_from_ts REAL,
          valid_to_ts REAL,
          issuer TEXT,
          subject TEXT,
          serial_number TEXT,
          is_self_signed INTEGER NOT NULL DEFAULT 0,
          error_message TEXT,
          checked_at_ts REAL NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS incidents (
          incident_id INTEGER PRIMARY KEY AUTOINCREMENT,
          service_id INTEGER NOT NULL,
          started_at_ts REAL NOT NULL,
          recovered_at_ts REAL,
          duration_seconds INTEGER,
          error_message TEXT,
          is_resolved INTEGER NOT NULL DEFAULT 0
        );
        """
    )
    # At most one open incident per service
    conn.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_incidents_one_open "
        "ON incidents(service_id) WHERE is_resolved = 0;"
    )


class SqliteTargetRepository:
    def __init__(self, db: SqliteDatabase):
        self.db = db

    def upsert(self, target: Target) -> None:
        conn = self.db.connect()
        try:
            conn.execute(
                """
                INSERT INTO services (service_id, name, url, is_active, headers_json)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(service_id) DO UPDATE SET
                  name=excluded.name, url=excluded.url,
                  is_active=excluded.is_active, headers_json=excluded.headers_json
                """,
                (target.id, target.name, target.url, 1 if target.active else 0, json.dumps(target.headers or {})),
            )
        finally:
            conn.close()

    def list_active(self) -> list[Target]:
        conn = self.db.connect()
        try:
            rows = conn.execute(
                "SELECT * FROM services WHERE is_active = 1 ORDER BY service_id"
            ).fetchall()
        finally:
            conn.close()
        return [
            Target(
                id=int(r["service_id"]),
                name=str(r["name"]),
                url=str(r["url"]),
                active=bool(r["is_active"]),
                headers=json.loads(r["headers_json"]) if r["headers_json"] else {},
            )
            for r in rows
        ]

    def update_status(self, target_id: int, status: ProbeStatus) -> None:
        conn = self.db.connect()
        try:
            conn.execute(
                "UPDATE services SET current_status=?, last_checked_at_ts=? WHERE service_id=?",
                (ProbeStatus(status).value, _ts(utcnow()), int(target_id)),
            )
        finally:
            conn.close()

    def get_status(self, target_id: int) -> Optional[ProbeStatus]:
        conn = self.db.connect()
        try:
            row = conn.execute(
                "SELECT current_status FROM services WHERE service_id=?", (int(target_id),)
            ).fetchone()
        finally:
            conn.close()
        if row is None or row["current_status"] is None:
            return None
        return ProbeStatus(row["current_status"])


class SqliteUptimeResultRepository:
    def __init__(self, db: SqliteDatabase):
        self.db = db

    def save(self, result: UptimeProbeResult) -> None:
        conn = self.db.connect()
        try:
            conn.execute(
                """
                INSERT INTO uptime_checks
                  (service_id, status, response_time_ms, http_code, error_message, checked_at_ts)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    result.target_id,
                    result.status.value,
                    result.response_time_ms,
                    result.status_code,
                    result.error_message,
                    _ts(result.checked_at),
                ),
            )
        finally:
            conn.close()

    def count(self, target_id: int) -> int:
        conn = self.db.connect()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM uptime_checks WHERE service_id=?", (int(target_id),)
            ).fetchone()
        finally:
            conn.close()
        return int(row["n"])


class SqliteTlsResultRepository:
    def __init__(self, db: SqliteDatabase):
        self.db = db

    def save(self, result: TlsProbeResult) -> None:
        conn = self.db.connect()
        try:
            conn.execute(
                """
                INSERT INTO ssl_checks
                  (service_id, domain, port, days_remaining, valid_from_ts, valid_to_ts, issuer,
                   subject, serial_number, is_self_signed, error_message, checked_at_ts)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.target_id,
                    result.host,
                    result.port,
                    result.days_remaining,
                    _ts(result.not_before),
                    _ts(result.not_after),
                    result.issuer,
                    result.subject,
                    result.serial_number,
                    1 if result.self_signed else 0,
                    result.error,
                    _ts(result.checked_at),
                ),
            )
        finally:
            conn.close()


class SqliteIncidentRepository:
    def __init__(self, db: SqliteDatabase):
        self.db = db

    def find_open(self, target_id: int) -> Optional[int]:
        conn = self.db.connect()
        try:
            row = conn.execute(
                """
                SELECT incident_id FROM incidents
                WHERE service_id = ? AND is_resolved = 0
                ORDER BY started_at_ts DESC LIMIT 1
                """,
                (int(target_id),),
            ).fetchone()
        finally:
            conn.close()
        return int(row["incident_id"]) if row else None

    def open(self, target_id: int, error_message: Optional[str]) -> int:
        """Open an incident; returns the already-open one if there is one."""
        conn = self.db.connect()
        try:
            try:
                cur = conn.execute(
                    "INSERT INTO incidents (service_id, started_at_ts, error_message, is_resolved) "
                    "VALUES (?, ?, ?, 0)",
                    (int(target_id), _ts(utcnow()), error_message),
                )
                incident_id = int(cur.lastrowid)
                logger.info("Created incident", incident_id=incident_id, target_id=target_id)
                return incident_id
            except sqlite3.IntegrityError:
                row = conn.execute(
                    "SELECT incident_id FROM incidents WHERE service_id = ? AND is_resolved = 0",
                    (int(target_id),),
                ).fetchone()
                if row is None:
                    raise
                return int(row["incident_id"])
        finally:
            conn.close()

    def resolve(self, incident_id: int) -> None:
        now_ts = _ts(utcnow())
        conn = self.db.connect()
        try:
            cur = conn.execute(
                """
                UPDATE incidents SET
                  recovered_at_ts = ?,
                  duration_seconds = CAST(? - started_at_ts AS INTEGER),
                  is_resolved = 1
                WHERE incident_id = ? AND is_resolved = 0
                """,
                (now_ts, now_ts, int(incident_id)),
            )
            resolved = cur.rowcount > 0
        finally:
            conn.close()
        if resolved:
            logger.info("Resolved incident", incident_id=incident_id)

    def list_incidents(self, open_only: bool = False) -> list[Incident]:
        sql = "SELECT * FROM incidents"
        if open_only:
            sql += " WHERE is_resolved = 0"
        sql += " ORDER BY incident_id"
        conn = self.db.connect()
        try:
            rows = conn.execute(sql).fetchall()
        finally:
            conn.close()
        return [
            Incident(
                id=int(r["incident_id"]),
                target_id=int(r["service_id"]),
                opened_at=_dt(r["started_at_ts"]),
                error_message=r["error_message"],
                resolved_at=_dt(r["recovered_at_ts"]),
            )
            for r in rows
        ]

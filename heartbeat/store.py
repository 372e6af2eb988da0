from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Protocol

from heartbeat.errors import NotFoundError, StorageError
from heartbeat.model import CHECK_PARTITION, Monitor


SCHEMA_VERSION = 1

_MONITOR_COLUMNS = (
    "slug, interval_secs, last_ping, next_due, check_partition, last_alerted_at, "
    "alert_count, created_at, paused, expires_at"
)


class MonitorStore(Protocol):
    """
    Storage contract used by the check cycle and the ingestion/management paths.

    Every operation is atomic for a single row; nothing spans rows.
    """

    def upsert(self, monitor: Monitor) -> None: ...

    def get(self, slug: str) -> Monitor | None: ...

    def query_overdue(self, now: int) -> list[Monitor]: ...

    def query_alerted(self) -> list[Monitor]: ...

    def update_alert_state(self, slug: str, now: int, alert_count: int) -> None: ...

    def clear_alert_state(self, slug: str) -> None: ...

    def list(self) -> list[Monitor]: ...

    def delete(self, slug: str) -> None: ...

    def set_paused(self, slug: str, paused: bool) -> None: ...

    def purge_expired(self, now: int) -> int: ...


def _row_to_monitor(row: sqlite3.Row) -> Monitor:
    paused = row["paused"]
    return Monitor(
        slug=str(row["slug"]),
        interval_secs=int(row["interval_secs"]),
        last_ping=int(row["last_ping"]),
        next_due=int(row["next_due"]),
        check_partition=str(row["check_partition"]),
        last_alerted_at=int(row["last_alerted_at"]) if row["last_alerted_at"] is not None else None,
        alert_count=int(row["alert_count"]) if row["alert_count"] is not None else None,
        created_at=int(row["created_at"]),
        paused=bool(paused) if paused is not None else None,
        expires_at=int(row["expires_at"]),
    )


def _ensure_schema_conn(conn: sqlite3.Connection) -> None:
    conn.execute("CREATE TABLE IF NOT EXISTS schema_meta (k TEXT PRIMARY KEY, v TEXT NOT NULL);")
    row = conn.execute("SELECT v FROM schema_meta WHERE k='version'").fetchone()
    cur = int(row["v"]) if row and row["v"] else 0
    if cur >= SCHEMA_VERSION:
        return

    if cur == 0:
        _apply_v1(conn)
        conn.execute("INSERT OR REPLACE INTO schema_meta (k, v) VALUES ('version', ?)", (str(SCHEMA_VERSION),))
        return

    raise RuntimeError(f"Unsupported schema version upgrade path cur={cur} target={SCHEMA_VERSION}")


def _apply_v1(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS monitors (
          slug TEXT PRIMARY KEY,
          interval_secs INTEGER NOT NULL,
          last_ping INTEGER NOT NULL,
          next_due INTEGER NOT NULL,
          check_partition TEXT NOT NULL,
          last_alerted_at INTEGER,
          alert_count INTEGER,
          created_at INTEGER NOT NULL,
          paused INTEGER,
          expires_at INTEGER NOT NULL
        );
        """
    )
    # Range scan for the check cycle: WHERE check_partition=? AND next_due < ?
    conn.execute("CREATE INDEX IF NOT EXISTS idx_monitors_due ON monitors(check_partition, next_due);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_monitors_expires ON monitors(expires_at);")

    # Bearer keys for the HTTP API; only SHA-256 hashes are stored.
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS api_keys (
          token_hash TEXT PRIMARY KEY,
          description TEXT NOT NULL,
          created_at INTEGER NOT NULL
        );
        """
    )


class SqliteMonitorStore:
    """MonitorStore backed by a single SQLite file; one short-lived connection per call."""

    def __init__(self, db_path: str) -> None:
        p = str(db_path or "").strip()
        if not p:
            raise ValueError("Missing db_path")
        self.db_path = p

    def _connect(self) -> sqlite3.Connection:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000;")
        conn.execute("PRAGMA journal_mode = WAL;")
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except (sqlite3.Error, OSError) as exc:
            raise StorageError(f"cannot open monitor store {self.db_path}: {exc}") from exc
        try:
            _ensure_schema_conn(conn)
            yield conn
        except sqlite3.Error as exc:
            raise StorageError(f"monitor store error: {exc}") from exc
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._session():
            pass

    # -----------------
    # Monitors
    # -----------------
    def upsert(self, monitor: Monitor) -> None:
        with self._session() as conn:
            conn.execute(
                f"""
                INSERT INTO monitors ({_MONITOR_COLUMNS})
                VALUES (?, ?, ?, ?, ?, NULL, NULL, ?, NULL, ?)
                ON CONFLICT(slug) DO UPDATE SET
                  interval_secs=excluded.interval_secs,
                  last_ping=excluded.last_ping,
                  next_due=excluded.next_due,
                  check_partition=excluded.check_partition,
                  expires_at=excluded.expires_at
                """,
                (
                    monitor.slug,
                    int(monitor.interval_secs),
                    int(monitor.last_ping),
                    int(monitor.next_due),
                    monitor.check_partition,
                    int(monitor.created_at),
                    int(monitor.expires_at),
                ),
            )

    def get(self, slug: str) -> Monitor | None:
        with self._session() as conn:
            row = conn.execute(f"SELECT {_MONITOR_COLUMNS} FROM monitors WHERE slug=?", (str(slug),)).fetchone()
            return _row_to_monitor(row) if row else None

    def query_overdue(self, now: int) -> list[Monitor]:
        # Not filtered on paused: the index does not carry it.
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT {_MONITOR_COLUMNS} FROM monitors INDEXED BY idx_monitors_due
                WHERE check_partition=? AND next_due < ?
                ORDER BY next_due
                """,
                (CHECK_PARTITION, int(now)),
            ).fetchall()
            return [_row_to_monitor(r) for r in rows]

    def query_alerted(self) -> list[Monitor]:
        with self._session() as conn:
            rows = conn.execute(
                f"SELECT {_MONITOR_COLUMNS} FROM monitors WHERE last_alerted_at IS NOT NULL ORDER BY slug"
            ).fetchall()
            return [_row_to_monitor(r) for r in rows]

    def update_alert_state(self, slug: str, now: int, alert_count: int) -> None:
        with self._session() as conn:
            conn.execute(
                "UPDATE monitors SET last_alerted_at=?, alert_count=? WHERE slug=?",
                (int(now), int(alert_count), str(slug)),
            )

    def clear_alert_state(self, slug: str) -> None:
        with self._session() as conn:
            conn.execute("UPDATE monitors SET last_alerted_at=NULL, alert_count=NULL WHERE slug=?", (str(slug),))

    def list(self) -> list[Monitor]:
        with self._session() as conn:
            rows = conn.execute(f"SELECT {_MONITOR_COLUMNS} FROM monitors ORDER BY slug").fetchall()
            return [_row_to_monitor(r) for r in rows]

    def delete(self, slug: str) -> None:
        with self._session() as conn:
            res = conn.execute("DELETE FROM monitors WHERE slug=?", (str(slug),))
            if int(res.rowcount or 0) == 0:
                raise NotFoundError(str(slug))

    def set_paused(self, slug: str, paused: bool) -> None:
        with self._session() as conn:
            res = conn.execute("UPDATE monitors SET paused=? WHERE slug=?", (1 if paused else 0, str(slug)))
            if int(res.rowcount or 0) == 0:
                raise NotFoundError(str(slug))

    def purge_expired(self, now: int) -> int:
        with self._session() as conn:
            res = conn.execute("DELETE FROM monitors WHERE expires_at <= ?", (int(now),))
            return int(res.rowcount or 0)

    # -----------------
    # API keys
    # -----------------
    def create_api_key(self, *, token_hash: str, description: str, now: int) -> dict[str, Any]:
        with self._session() as conn:
            conn.execute(
                "INSERT INTO api_keys (token_hash, description, created_at) VALUES (?, ?, ?)",
                (token_hash, description.strip(), int(now)),
            )
            return {"description": description.strip(), "created_at": int(now)}

    def api_key_exists(self, token_hash: str) -> bool:
        with self._session() as conn:
            row = conn.execute("SELECT 1 FROM api_keys WHERE token_hash=?", (token_hash,)).fetchone()
            return row is not None

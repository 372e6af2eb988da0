from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from heartbeat.errors import NotFoundError, StorageError
from heartbeat.model import Monitor, Slug
from heartbeat.store import SqliteMonitorStore


def _ping(store: SqliteMonitorStore, slug: str, *, now: int, interval: int = 300, next_due: int | None = None) -> Monitor:
    m = Monitor.from_ping(Slug(slug), interval_secs=interval, now=now, next_due=next_due)
    store.upsert(m)
    return m


def test_get_missing_returns_none(store: SqliteMonitorStore) -> None:
    assert store.get("nope") is None


def test_upsert_then_get(store: SqliteMonitorStore) -> None:
    _ping(store, "svc-a", now=1000)
    got = store.get("svc-a")
    assert got is not None
    assert got.interval_secs == 300
    assert got.last_ping == 1000
    assert got.next_due == 1300
    assert got.created_at == 1000
    assert got.check_partition == "CHECK"
    assert got.last_alerted_at is None
    assert got.alert_count is None
    assert got.paused is None


def test_upsert_preserves_created_at(store: SqliteMonitorStore) -> None:
    _ping(store, "svc-a", now=1000)
    _ping(store, "svc-a", now=5000, interval=60)
    got = store.get("svc-a")
    assert got is not None
    assert got.created_at == 1000
    assert got.last_ping == 5000
    assert got.next_due == 5060
    assert got.interval_secs == 60


def test_upsert_keeps_alert_state_and_pause(store: SqliteMonitorStore) -> None:
    _ping(store, "svc-a", now=1000)
    store.update_alert_state("svc-a", 2000, 3)
    store.set_paused("svc-a", True)
    _ping(store, "svc-a", now=3000)
    got = store.get("svc-a")
    assert got is not None
    assert got.last_alerted_at == 2000
    assert got.alert_count == 3
    assert got.paused is True


def test_query_overdue_is_strictly_before_now(store: SqliteMonitorStore) -> None:
    _ping(store, "due-past", now=1000)  # next_due 1300
    _ping(store, "due-now", now=1700)  # next_due 2000
    _ping(store, "due-later", now=5000)  # next_due 5300
    _ping(store, "failed", now=1500, next_due=0)
    slugs = [m.slug for m in store.query_overdue(2000)]
    assert slugs == ["failed", "due-past"]


def test_query_overdue_includes_paused(store: SqliteMonitorStore) -> None:
    _ping(store, "paused-one", now=1000)
    store.set_paused("paused-one", True)
    assert [m.slug for m in store.query_overdue(9999)] == ["paused-one"]


def test_overdue_query_uses_due_index(store: SqliteMonitorStore) -> None:
    conn = sqlite3.connect(store.db_path)
    try:
        plan = conn.execute(
            "EXPLAIN QUERY PLAN SELECT slug FROM monitors WHERE check_partition='CHECK' AND next_due < 100"
        ).fetchall()
    finally:
        conn.close()
    assert any("idx_monitors_due" in str(row) for row in plan)


def test_alert_state_update_and_clear(store: SqliteMonitorStore) -> None:
    _ping(store, "a", now=1000)
    _ping(store, "b", now=1000)
    assert store.query_alerted() == []

    store.update_alert_state("b", 2000, 1)
    alerted = store.query_alerted()
    assert [m.slug for m in alerted] == ["b"]
    assert alerted[0].last_alerted_at == 2000
    assert alerted[0].alert_count == 1

    store.clear_alert_state("b")
    got = store.get("b")
    assert got is not None
    assert got.last_alerted_at is None
    assert got.alert_count is None
    assert store.query_alerted() == []


def test_list_sorted_by_slug(store: SqliteMonitorStore) -> None:
    for slug in ("zeta", "alpha", "mid"):
        _ping(store, slug, now=1000)
    assert [m.slug for m in store.list()] == ["alpha", "mid", "zeta"]


def test_delete_and_missing(store: SqliteMonitorStore) -> None:
    _ping(store, "gone", now=1000)
    store.delete("gone")
    assert store.get("gone") is None
    with pytest.raises(NotFoundError):
        store.delete("gone")


def test_set_paused_missing_raises(store: SqliteMonitorStore) -> None:
    with pytest.raises(NotFoundError):
        store.set_paused("ghost", True)


def test_set_paused_roundtrip(store: SqliteMonitorStore) -> None:
    _ping(store, "p", now=1000)
    store.set_paused("p", True)
    assert store.get("p").paused is True
    store.set_paused("p", False)
    assert store.get("p").paused is False


def test_purge_expired(store: SqliteMonitorStore) -> None:
    old = _ping(store, "old", now=1000)
    _ping(store, "fresh", now=10_000_000)
    assert store.purge_expired(old.expires_at) == 1
    assert store.get("old") is None
    assert store.get("fresh") is not None


def test_api_keys(store: SqliteMonitorStore) -> None:
    assert store.api_key_exists("abc") is False
    store.create_api_key(token_hash="abc", description="ci", now=1)
    assert store.api_key_exists("abc") is True


def test_unopenable_database_raises_storage_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    s = SqliteMonitorStore(str(blocker / "sub" / "heartbeat.db"))
    with pytest.raises(StorageError):
        s.get("x")


def test_corrupt_database_raises_storage_error(tmp_path: Path) -> None:
    p = tmp_path / "corrupt.db"
    p.write_bytes(b"this is not a sqlite database" * 100)
    s = SqliteMonitorStore(str(p))
    with pytest.raises(StorageError):
        s.list()


def test_schema_is_idempotent(tmp_path: Path) -> None:
    s = SqliteMonitorStore(str(tmp_path / "h.db"))
    s.ensure_schema()
    s.ensure_schema()
    conn = sqlite3.connect(s.db_path)
    try:
        version = conn.execute("SELECT v FROM schema_meta WHERE k='version'").fetchone()[0]
    finally:
        conn.close()
    assert version == "1"

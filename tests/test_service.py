from __future__ import annotations

import pytest

from heartbeat.errors import IntervalError, NotFoundError
from heartbeat.model import DEFAULT_INTERVAL_SECS, MonitorStatus, Slug
from heartbeat.service import (
    delete_monitor,
    get_monitor,
    list_monitors,
    pause_monitor,
    record_fail,
    record_ping,
    unpause_monitor,
)
from heartbeat.store import SqliteMonitorStore


def test_first_ping_without_interval_uses_default(store: SqliteMonitorStore) -> None:
    m = record_ping(store, Slug("job"), now=1000)
    assert m.interval_secs == DEFAULT_INTERVAL_SECS
    assert m.next_due == 1000 + DEFAULT_INTERVAL_SECS


def test_ping_without_interval_keeps_existing_interval(store: SqliteMonitorStore) -> None:
    record_ping(store, Slug("job"), "1h", now=1000)
    m = record_ping(store, Slug("job"), now=2000)
    assert m.interval_secs == 3600
    assert store.get("job").next_due == 5600


def test_ping_with_invalid_interval_writes_nothing(store: SqliteMonitorStore) -> None:
    with pytest.raises(IntervalError):
        record_ping(store, Slug("job"), "5s", now=1000)
    assert store.get("job") is None


def test_fail_uses_existing_interval_and_forces_overdue(store: SqliteMonitorStore) -> None:
    record_ping(store, Slug("job"), "10m", now=1000)
    m = record_fail(store, Slug("job"), now=1200)
    assert m.next_due == 0
    stored = store.get("job")
    assert stored.interval_secs == 600
    assert stored.next_due == 0
    assert stored.created_at == 1000


def test_fail_creates_unknown_monitor_with_default_interval(store: SqliteMonitorStore) -> None:
    record_fail(store, Slug("new-job"), now=1000)
    stored = store.get("new-job")
    assert stored.interval_secs == DEFAULT_INTERVAL_SECS
    assert stored.next_due == 0


def test_list_monitors_sorted_with_status(store: SqliteMonitorStore) -> None:
    record_ping(store, Slug("b-ok"), "5m", now=1000)
    record_ping(store, Slug("a-late"), "1m", now=100)
    record_ping(store, Slug("c-paused"), "1m", now=100)
    pause_monitor(store, Slug("c-paused"))

    views = list_monitors(store, now=1100)

    assert [v.slug for v in views] == ["a-late", "b-ok", "c-paused"]
    assert [v.status for v in views] == [MonitorStatus.OVERDUE, MonitorStatus.OK, MonitorStatus.PAUSED]
    assert views[2].paused is True
    assert views[0].paused is False


def test_pause_does_not_touch_alert_fields(store: SqliteMonitorStore) -> None:
    record_ping(store, Slug("job"), now=1000)
    store.update_alert_state("job", 1500, 2)
    pause_monitor(store, Slug("job"))
    m = get_monitor(store, Slug("job"))
    assert m.paused is True
    assert m.last_alerted_at == 1500
    assert m.alert_count == 2
    unpause_monitor(store, Slug("job"))
    assert get_monitor(store, Slug("job")).paused is False


def test_management_on_unknown_slug_raises_not_found(store: SqliteMonitorStore) -> None:
    with pytest.raises(NotFoundError):
        delete_monitor(store, Slug("ghost"))
    with pytest.raises(NotFoundError):
        pause_monitor(store, Slug("ghost"))
    with pytest.raises(NotFoundError):
        unpause_monitor(store, Slug("ghost"))
    with pytest.raises(NotFoundError):
        get_monitor(store, Slug("ghost"))


def test_delete_monitor(store: SqliteMonitorStore) -> None:
    record_ping(store, Slug("job"), now=1000)
    delete_monitor(store, Slug("job"))
    assert store.get("job") is None

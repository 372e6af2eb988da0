"""Ingestion and management operations on top of a MonitorStore."""

from __future__ import annotations

import time
from dataclasses import dataclass

import structlog

from heartbeat.errors import NotFoundError
from heartbeat.interval import parse_and_validate_interval
from heartbeat.model import DEFAULT_INTERVAL_SECS, Monitor, MonitorStatus, Slug, derive_status
from heartbeat.store import MonitorStore


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MonitorView:
    slug: str
    status: MonitorStatus
    interval_secs: int
    last_ping: int
    next_due: int
    alert_count: int | None
    paused: bool


def _now(now: int | None) -> int:
    return int(time.time()) if now is None else int(now)


def _known_interval(store: MonitorStore, slug: Slug) -> int:
    existing = store.get(str(slug))
    return existing.interval_secs if existing is not None else DEFAULT_INTERVAL_SECS


def record_ping(store: MonitorStore, slug: Slug, interval: str | None = None, *, now: int | None = None) -> Monitor:
    """
    Record a heartbeat. Creates the monitor on first ping.

    Without `interval` an existing monitor keeps its interval and a new one gets the default.
    """
    ts = _now(now)
    if interval is not None:
        interval_secs = parse_and_validate_interval(interval)
    else:
        interval_secs = _known_interval(store, slug)
    monitor = Monitor.from_ping(slug, interval_secs=interval_secs, now=ts)
    store.upsert(monitor)
    logger.debug("ping recorded", slug=str(slug), interval_secs=interval_secs, next_due=monitor.next_due)
    return monitor


def record_fail(store: MonitorStore, slug: Slug, *, now: int | None = None) -> Monitor:
    """Mark a monitor overdue right away (next_due=0), creating it if needed."""
    ts = _now(now)
    monitor = Monitor.from_ping(slug, interval_secs=_known_interval(store, slug), now=ts, next_due=0)
    store.upsert(monitor)
    logger.info("failure reported", slug=str(slug))
    return monitor


def list_monitors(store: MonitorStore, *, now: int | None = None) -> list[MonitorView]:
    ts = _now(now)
    out: list[MonitorView] = []
    for m in sorted(store.list(), key=lambda m: m.slug):
        out.append(
            MonitorView(
                slug=m.slug,
                status=derive_status(m, ts),
                interval_secs=m.interval_secs,
                last_ping=m.last_ping,
                next_due=m.next_due,
                alert_count=m.alert_count,
                paused=m.paused is True,
            )
        )
    return out


def get_monitor(store: MonitorStore, slug: Slug) -> Monitor:
    monitor = store.get(str(slug))
    if monitor is None:
        raise NotFoundError(str(slug))
    return monitor


def delete_monitor(store: MonitorStore, slug: Slug) -> None:
    store.delete(str(slug))
    logger.info("monitor deleted", slug=str(slug))


def pause_monitor(store: MonitorStore, slug: Slug) -> None:
    # Alert fields stay as they are; the check cycle ignores paused monitors.
    store.set_paused(str(slug), True)
    logger.info("monitor paused", slug=str(slug))


def unpause_monitor(store: MonitorStore, slug: Slug) -> None:
    store.set_paused(str(slug), False)
    logger.info("monitor unpaused", slug=str(slug))

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

import structlog

from heartbeat import alerts
from heartbeat.errors import DeliveryError
from heartbeat.model import MonitorStatus, derive_status
from heartbeat.store import MonitorStore
from heartbeat.telegram import NotificationSender


logger = structlog.get_logger(__name__)

REPEAT_ALERT_INTERVAL_SECS = 3600


@dataclass
class CycleReport:
    now: int
    overdue_count: int = 0
    alerted_count: int = 0
    first_alerts: int = 0
    repeat_alerts: int = 0
    recoveries: int = 0
    skipped_paused: int = 0
    delivery_failures: int = 0
    budget_exhausted: bool = False


class _Budget:
    def __init__(self, seconds: float | None) -> None:
        self.deadline = time.monotonic() + float(seconds) if seconds is not None else None

    def exhausted(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline


async def check_monitors(
    store: MonitorStore,
    sender: NotificationSender,
    *,
    now: int | None = None,
    budget_seconds: float | None = None,
) -> CycleReport:
    """
    Run one check cycle.

    1. Load overdue monitors (index range scan) and monitors with an active alert.
    2. Overdue and not paused: first alert, or a repeat once 3600s have passed since the last one.
    3. Alerted, no longer overdue and not paused: recovery notification, then clear alert state.

    Alert state is written only after the sink confirmed delivery. Delivery errors are
    logged and left for the next cycle; store errors propagate to the caller.
    """
    now = int(time.time()) if now is None else int(now)
    budget = _Budget(budget_seconds)

    overdue = await asyncio.to_thread(store.query_overdue, now)
    alerted = await asyncio.to_thread(store.query_alerted)
    report = CycleReport(now=now, overdue_count=len(overdue), alerted_count=len(alerted))
    logger.info("check cycle start", overdue_count=len(overdue), alerted_count=len(alerted))

    overdue_slugs: set[str] = set()

    for monitor in overdue:
        if budget.exhausted():
            report.budget_exhausted = True
            break

        # The overdue index does not know about paused monitors.
        if derive_status(monitor, now) is MonitorStatus.PAUSED:
            logger.info("skipping paused monitor", slug=monitor.slug)
            report.skipped_paused += 1
            continue

        overdue_slugs.add(monitor.slug)
        alert_count = monitor.alert_count or 0

        if monitor.last_alerted_at is None:
            msg = alerts.format_overdue(monitor.slug, monitor.interval_secs, monitor.last_ping, now)
            try:
                await sender.send_with_retry(msg)
            except DeliveryError as exc:
                report.delivery_failures += 1
                logger.warning("failed to send first alert, will retry next cycle", slug=monitor.slug, error=str(exc))
                continue
            await asyncio.to_thread(store.update_alert_state, monitor.slug, now, alert_count + 1)
            report.first_alerts += 1
            logger.info("sent first overdue alert", slug=monitor.slug)
            continue

        if now - monitor.last_alerted_at < REPEAT_ALERT_INTERVAL_SECS:
            continue

        total_downtime = max(0, now - monitor.next_due)
        msg = alerts.format_repeat(monitor.slug, total_downtime)
        try:
            await sender.send_with_retry(msg)
        except DeliveryError as exc:
            report.delivery_failures += 1
            logger.warning("failed to send repeat alert, will retry next cycle", slug=monitor.slug, error=str(exc))
            continue
        await asyncio.to_thread(store.update_alert_state, monitor.slug, now, alert_count + 1)
        report.repeat_alerts += 1
        logger.info("sent repeat overdue alert", slug=monitor.slug, alert_count=alert_count + 1)

    if not report.budget_exhausted:
        for monitor in alerted:
            if budget.exhausted():
                report.budget_exhausted = True
                break
            if monitor.slug in overdue_slugs:
                continue
            # An operator pause is not a recovery.
            status = derive_status(monitor, now)
            if status is MonitorStatus.PAUSED:
                continue
            # Failed again after the overdue query ran.
            if status is MonitorStatus.OVERDUE:
                continue
            if monitor.last_alerted_at is None:
                continue

            downtime = max(0, now - monitor.last_alerted_at)
            msg = alerts.format_recovery(monitor.slug, downtime)
            try:
                await sender.send_with_retry(msg)
            except DeliveryError as exc:
                report.delivery_failures += 1
                logger.warning("failed to send recovery alert, will retry next cycle", slug=monitor.slug, error=str(exc))
                continue
            await asyncio.to_thread(store.clear_alert_state, monitor.slug)
            report.recoveries += 1
            logger.info("sent recovery notification", slug=monitor.slug)

    logger.info(
        "check cycle complete",
        first_alerts=report.first_alerts,
        repeat_alerts=report.repeat_alerts,
        recoveries=report.recoveries,
        delivery_failures=report.delivery_failures,
        budget_exhausted=report.budget_exhausted,
    )
    return report

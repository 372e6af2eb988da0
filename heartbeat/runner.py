"""Checker process: runs the check cycle once or on a fixed interval."""

from __future__ import annotations

import argparse
import asyncio
import signal
import time
from datetime import datetime, timezone

import httpx
import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from heartbeat.checker import CycleReport, check_monitors
from heartbeat.config import HeartbeatConfig, load_config
from heartbeat.errors import StorageError
from heartbeat.logs import configure_logging
from heartbeat.store import MonitorStore, SqliteMonitorStore
from heartbeat.telegram import NotificationSender, TelegramConfig, build_telegram_sender


logger = structlog.get_logger(__name__)

CHECK_JOB_ID = "heartbeat-check"


async def run_cycle(
    store: MonitorStore,
    sender: NotificationSender,
    *,
    budget_seconds: float | None = None,
    now: int | None = None,
) -> CycleReport:
    """Purge expired monitors, then run one check cycle. Store errors propagate."""
    ts = int(time.time()) if now is None else int(now)
    purged = await asyncio.to_thread(store.purge_expired, ts)
    if purged:
        logger.info("purged expired monitors", count=purged)
    return await check_monitors(store, sender, now=ts, budget_seconds=budget_seconds)


async def _scheduled_cycle(store: MonitorStore, sender: NotificationSender, budget_seconds: float | None) -> None:
    try:
        await run_cycle(store, sender, budget_seconds=budget_seconds)
    except StorageError:
        # The next scheduled run starts over from stored state.
        logger.exception("check cycle aborted by store failure")


def _require_telegram(config: HeartbeatConfig) -> TelegramConfig:
    if not config.telegram_configured():
        raise RuntimeError("Missing TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID")
    return TelegramConfig(bot_token=config.telegram_bot_token, chat_id=config.telegram_chat_id)


async def run_once(config: HeartbeatConfig) -> int:
    tg = _require_telegram(config)
    store = SqliteMonitorStore(config.db_path)
    async with httpx.AsyncClient(headers={"User-Agent": "heartbeat-checker"}) as client:
        sender = build_telegram_sender(client, tg, timeout=config.http_timeout_seconds)
        try:
            await run_cycle(store, sender, budget_seconds=config.cycle_budget_seconds)
        except StorageError:
            logger.exception("check cycle aborted by store failure")
            return 1
    return 0


async def run_forever(config: HeartbeatConfig) -> None:
    tg = _require_telegram(config)
    store = SqliteMonitorStore(config.db_path)
    store.ensure_schema()

    logger.info(
        "starting heartbeat checker",
        db_path=config.db_path,
        check_interval_seconds=config.check_interval_seconds,
        cycle_budget_seconds=config.cycle_budget_seconds,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    async with httpx.AsyncClient(headers={"User-Agent": "heartbeat-checker"}) as client:
        sender = build_telegram_sender(client, tg, timeout=config.http_timeout_seconds)
        scheduler = AsyncIOScheduler(timezone=timezone.utc)
        # Cycles must never overlap: a late run is skipped rather than queued.
        scheduler.add_job(
            _scheduled_cycle,
            trigger=IntervalTrigger(seconds=int(config.check_interval_seconds)),
            id=CHECK_JOB_ID,
            args=(store, sender, config.cycle_budget_seconds),
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        scheduler.start()
        try:
            await stop.wait()
        finally:
            scheduler.shutdown(wait=False)
            logger.info("heartbeat checker stopped")


def main() -> None:
    parser = argparse.ArgumentParser(description="Heartbeat check cycle runner")
    parser.add_argument("--once", action="store_true", help="Run a single check cycle then exit")
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    args = parser.parse_args()

    config = load_config(args.config)
    configure_logging(config.log_level, config.log_format)

    if args.once:
        raise SystemExit(asyncio.run(run_once(config)))
    asyncio.run(run_forever(config))


if __name__ == "__main__":
    main()

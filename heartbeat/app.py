from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from heartbeat import service
from heartbeat.auth import get_store, require_api_key
from heartbeat.config import HeartbeatConfig
from heartbeat.errors import NotFoundError, StorageError, ValidationError
from heartbeat.model import Slug, derive_status
from heartbeat.schema import FailResponse, HeartbeatResponse, MonitorItem, MonitorListResponse, OkResponse
from heartbeat.store import SqliteMonitorStore


logger = structlog.get_logger(__name__)


def _rfc3339(epoch: int) -> str:
    try:
        return datetime.fromtimestamp(int(epoch), tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return str(epoch)


def create_app(config: HeartbeatConfig | None = None, store: SqliteMonitorStore | None = None) -> FastAPI:
    app = FastAPI(title="Heartbeat Monitor", version="0.1.0")
    app.state.config = config or HeartbeatConfig()
    app.state.store = store or SqliteMonitorStore(app.state.config.db_path)

    @app.on_event("startup")
    def _startup() -> None:
        app.state.store.ensure_schema()

    @app.exception_handler(ValidationError)
    async def _validation_error(req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(NotFoundError)
    async def _not_found(req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(StorageError)
    async def _storage_error(req: Request, exc: StorageError) -> JSONResponse:
        logger.error("storage error", path=req.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": "internal server error"})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(req: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"ok": True, "ts": time.time()}

    # -----------------
    # Ingestion
    # -----------------
    @app.get("/heartbeat/{slug}", response_model=HeartbeatResponse, dependencies=[Depends(require_api_key)])
    async def heartbeat(
        slug: str,
        interval: str | None = None,
        store: SqliteMonitorStore = Depends(get_store),
    ) -> HeartbeatResponse:
        s = Slug(slug)
        now = int(time.time())
        monitor = await asyncio.to_thread(service.record_ping, store, s, interval, now=now)
        return HeartbeatResponse(next_due=_rfc3339(monitor.next_due), status=derive_status(monitor, now))

    @app.post("/heartbeat/{slug}/fail", response_model=FailResponse, dependencies=[Depends(require_api_key)])
    async def heartbeat_fail(slug: str, store: SqliteMonitorStore = Depends(get_store)) -> FailResponse:
        s = Slug(slug)
        now = int(time.time())
        monitor = await asyncio.to_thread(service.record_fail, store, s, now=now)
        return FailResponse(status=derive_status(monitor, now))

    # -----------------
    # Management
    # -----------------
    @app.get("/monitors", response_model=MonitorListResponse, dependencies=[Depends(require_api_key)])
    async def monitors(store: SqliteMonitorStore = Depends(get_store)) -> MonitorListResponse:
        views = await asyncio.to_thread(service.list_monitors, store)
        return MonitorListResponse(
            monitors=[
                MonitorItem(
                    slug=v.slug,
                    status=v.status,
                    interval_secs=v.interval_secs,
                    last_ping=v.last_ping,
                    next_due=v.next_due,
                    alert_count=v.alert_count,
                    paused=v.paused,
                )
                for v in views
            ]
        )

    @app.delete("/monitors/{slug}", response_model=OkResponse, dependencies=[Depends(require_api_key)])
    async def delete_monitor(slug: str, store: SqliteMonitorStore = Depends(get_store)) -> OkResponse:
        await asyncio.to_thread(service.delete_monitor, store, Slug(slug))
        return OkResponse()

    @app.post("/monitors/{slug}/pause", response_model=OkResponse, dependencies=[Depends(require_api_key)])
    async def pause_monitor(slug: str, store: SqliteMonitorStore = Depends(get_store)) -> OkResponse:
        await asyncio.to_thread(service.pause_monitor, store, Slug(slug))
        return OkResponse()

    @app.post("/monitors/{slug}/unpause", response_model=OkResponse, dependencies=[Depends(require_api_key)])
    async def unpause_monitor(slug: str, store: SqliteMonitorStore = Depends(get_store)) -> OkResponse:
        await asyncio.to_thread(service.unpause_monitor, store, Slug(slug))
        return OkResponse()

    return app

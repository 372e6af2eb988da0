from __future__ import annotations

from pydantic import BaseModel

from heartbeat.model import MonitorStatus


class HeartbeatResponse(BaseModel):
    ok: bool = True
    next_due: str
    status: MonitorStatus


class FailResponse(BaseModel):
    ok: bool = True
    status: MonitorStatus


class MonitorItem(BaseModel):
    slug: str
    status: MonitorStatus
    interval_secs: int
    last_ping: int
    next_due: int
    alert_count: int | None = None
    paused: bool = False


class MonitorListResponse(BaseModel):
    monitors: list[MonitorItem]


class OkResponse(BaseModel):
    ok: bool = True

from __future__ import annotations

import asyncio
import hashlib
from typing import Any

from fastapi import Depends, HTTPException, Request

from heartbeat.store import SqliteMonitorStore


def hash_token(token: str) -> str:
    s = (token or "").strip()
    if not s:
        return ""
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _auth_header_token(req: Request) -> str:
    raw = req.headers.get("authorization") or ""
    if not raw:
        return ""
    parts = raw.split(None, 1)
    if len(parts) != 2:
        return ""
    scheme, rest = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer":
        return ""
    return rest


def get_store(req: Request) -> SqliteMonitorStore:
    store: Any = getattr(req.app.state, "store", None)
    if store is None:
        raise RuntimeError("Monitor store not configured")
    return store


async def require_api_key(req: Request, store: SqliteMonitorStore = Depends(get_store)) -> str:
    token = _auth_header_token(req)
    if not token:
        raise HTTPException(status_code=401, detail="invalid or missing API key")
    token_hash = hash_token(token)
    if not await asyncio.to_thread(store.api_key_exists, token_hash):
        raise HTTPException(status_code=401, detail="invalid or missing API key")
    return token_hash

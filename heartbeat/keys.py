"""Issue API keys for the heartbeat HTTP API."""

from __future__ import annotations

import argparse
import secrets
import sys
import time

from heartbeat.auth import hash_token
from heartbeat.config import load_config
from heartbeat.errors import StorageError
from heartbeat.store import SqliteMonitorStore


def issue_api_key(store: SqliteMonitorStore, description: str, *, now: int | None = None) -> str:
    """Create a random 64-character hex key. Only its SHA-256 hash is stored."""
    desc = (description or "").strip()
    if not desc:
        raise ValueError("description must not be empty")
    api_key = secrets.token_hex(32)
    store.create_api_key(
        token_hash=hash_token(api_key),
        description=desc,
        now=int(time.time()) if now is None else int(now),
    )
    return api_key


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Issue a heartbeat API key")
    parser.add_argument("--description", required=True, help="Who or what the key is for")
    parser.add_argument("--db-path", default=None, help="Override the configured SQLite database path")
    args = parser.parse_args(argv)

    config = load_config()
    store = SqliteMonitorStore(args.db_path or config.db_path)
    try:
        api_key = issue_api_key(store, args.description)
    except (StorageError, ValueError) as exc:
        print(f"Failed to store API key: {exc}", file=sys.stderr)
        return 1

    print(f"New API key: {api_key} [{args.description.strip()}]")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

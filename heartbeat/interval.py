from __future__ import annotations

import re

from heartbeat.errors import IntervalError


MIN_INTERVAL_SECS = 30
MAX_INTERVAL_SECS = 365 * 24 * 60 * 60

_UNIT_SECONDS = {
    "s": 1,
    "sec": 1,
    "secs": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 7 * 86400,
    "week": 7 * 86400,
    "weeks": 7 * 86400,
}

_SECONDS_RE = re.compile(r"[0-9]+")
_PART_RE = re.compile(r"([0-9]+)\s*([a-z]+)")


def parse_interval(raw: str | None) -> int | None:
    """
    Parse "5m", "1h30m", "2 hours", or a plain number of seconds ("300").

    Returns None when the value cannot be parsed.
    """
    s = str(raw or "").strip().lower()
    if not s:
        return None
    if _SECONDS_RE.fullmatch(s):
        return int(s)

    total = 0
    pos = 0
    for m in _PART_RE.finditer(s):
        if s[pos : m.start()].strip():
            return None
        unit = _UNIT_SECONDS.get(m.group(2))
        if unit is None:
            return None
        total += int(m.group(1)) * unit
        pos = m.end()
    if pos == 0 or s[pos:].strip():
        return None
    return total


def validate_interval(secs: int) -> int:
    if secs < MIN_INTERVAL_SECS:
        raise IntervalError(f"interval too short: minimum is 30s, got {secs}s")
    if secs > MAX_INTERVAL_SECS:
        raise IntervalError(f"interval too long: maximum is 365d, got {secs}s")
    return int(secs)


def parse_and_validate_interval(raw: str) -> int:
    secs = parse_interval(raw)
    if secs is None:
        raise IntervalError(f"cannot parse interval: {raw}")
    return validate_interval(secs)

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from heartbeat.errors import SlugEmpty, SlugInvalidCharacters, SlugInvalidHyphenPosition, SlugTooLong


MAX_SLUG_LENGTH = 64

# Constant value of the overdue-index partition column.
CHECK_PARTITION = "CHECK"

DEFAULT_INTERVAL_SECS = 300
TTL_SECS = 90 * 24 * 60 * 60

_SLUG_CHARS = frozenset("abcdefghijklmnopqrstuvwxyz0123456789-")


@dataclass(frozen=True)
class Slug:
    """
    Validated monitor identifier: 1-64 lowercase ASCII letters, digits or hyphens,
    with no leading or trailing hyphen.
    """

    value: str

    def __post_init__(self) -> None:
        s = self.value
        if not isinstance(s, str):
            raise TypeError(f"slug must be a string, got {type(s).__name__}")
        if not s:
            raise SlugEmpty()
        if len(s) > MAX_SLUG_LENGTH:
            raise SlugTooLong(len(s), MAX_SLUG_LENGTH)
        if any(ch not in _SLUG_CHARS for ch in s):
            raise SlugInvalidCharacters()
        if s.startswith("-") or s.endswith("-"):
            raise SlugInvalidHyphenPosition()

    def __str__(self) -> str:
        return self.value


class MonitorStatus(str, Enum):
    OK = "ok"
    OVERDUE = "overdue"
    PAUSED = "paused"


@dataclass
class Monitor:
    slug: str
    interval_secs: int
    last_ping: int
    next_due: int
    created_at: int
    expires_at: int
    check_partition: str = CHECK_PARTITION
    last_alerted_at: int | None = None
    alert_count: int | None = None
    paused: bool | None = None

    @classmethod
    def from_ping(cls, slug: Slug, *, interval_secs: int, now: int, next_due: int | None = None) -> "Monitor":
        """
        Build the row written on every ping. `created_at` is only a candidate value:
        the store keeps the original one when the monitor already exists.
        """
        return cls(
            slug=str(slug),
            interval_secs=int(interval_secs),
            last_ping=int(now),
            next_due=int(now + interval_secs) if next_due is None else int(next_due),
            created_at=int(now),
            expires_at=int(now + TTL_SECS),
        )


def derive_status(monitor: Monitor, now: int) -> MonitorStatus:
    # Paused wins over overdue.
    if monitor.paused is True:
        return MonitorStatus.PAUSED
    if monitor.next_due < now:
        return MonitorStatus.OVERDUE
    return MonitorStatus.OK

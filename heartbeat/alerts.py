"""Telegram MarkdownV2 message formatting for overdue, repeat and recovery notifications."""

from __future__ import annotations

from datetime import datetime, timezone


# Characters that must be escaped in MarkdownV2 outside of code spans.
MARKDOWN_V2_SPECIAL = frozenset("_*[]()~`>#+-=|{}.!")

_DURATION_UNITS = (
    ("d", 86400),
    ("h", 3600),
    ("m", 60),
    ("s", 1),
)


def escape_markdown_v2(text: str) -> str:
    out: list[str] = []
    for ch in text:
        if ch in MARKDOWN_V2_SPECIAL:
            out.append("\\")
        out.append(ch)
    return "".join(out)


def escape_around_code_spans(text: str) -> str:
    """
    Escape MarkdownV2 special characters outside backtick code spans.

    Text between backticks renders literally and is left alone. Outside code spans a
    backslash and the character after it are copied through unchanged, so sequences
    that are already escaped are not escaped twice.
    """
    out: list[str] = []
    in_code = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "`":
            in_code = not in_code
            out.append(ch)
        elif ch == "\\" and not in_code:
            out.append(ch)
            if i + 1 < n:
                i += 1
                out.append(text[i])
        elif in_code:
            out.append(ch)
        else:
            if ch in MARKDOWN_V2_SPECIAL:
                out.append("\\")
            out.append(ch)
        i += 1
    return "".join(out)


def format_duration(secs: int) -> str:
    secs = max(0, int(secs))
    if secs == 0:
        return "0s"
    parts: list[str] = []
    for suffix, size in _DURATION_UNITS:
        count, secs = divmod(secs, size)
        if count:
            parts.append(f"{count}{suffix}")
    return "".join(parts)


def format_time(epoch: int) -> str:
    try:
        dt = datetime.fromtimestamp(int(epoch), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return "unknown"
    return dt.strftime("%H:%M UTC")


def format_overdue(slug: str, interval_secs: int, last_ping: int, now: int) -> str:
    """
    First alert for a monitor.

    Example: OVERDUE: `my-job` | interval: 5m | last: 12:03 UTC | 7m late
    """
    interval = format_duration(interval_secs)
    last = format_time(last_ping)
    late = format_duration(max(0, int(now) - int(last_ping) - int(interval_secs)))
    raw = f"\u26a0\ufe0f OVERDUE: `{slug}` | interval: {interval} | last: {last} | {late} late"
    return escape_around_code_spans(raw)


def format_repeat(slug: str, total_downtime_secs: int) -> str:
    downtime = format_duration(total_downtime_secs)
    raw = f"\u26a0\ufe0f STILL OVERDUE: `{slug}` | down {downtime}"
    return escape_around_code_spans(raw)


def format_recovery(slug: str, downtime_secs: int) -> str:
    downtime = format_duration(downtime_secs)
    raw = f"\u2705 RECOVERED: `{slug}` (was down {downtime})"
    return escape_around_code_spans(raw)

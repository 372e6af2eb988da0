from __future__ import annotations

from pathlib import Path

import pytest

from heartbeat.store import SqliteMonitorStore
from heartbeat.telegram import NotificationSender, SinkResponse


class FakeSink:
    """Records every post; answers from a scripted list of outcomes (last one repeats)."""

    def __init__(self, outcomes: list[object] | None = None) -> None:
        self.outcomes = list(outcomes or [SinkResponse(ok=True)])
        self.posts: list[tuple[str, str, str]] = []

    async def post(self, chat_id: str, text: str, parse_mode: str) -> SinkResponse:
        self.posts.append((chat_id, text, parse_mode))
        idx = min(len(self.posts) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[idx]
        if isinstance(outcome, BaseException):
            raise outcome
        assert isinstance(outcome, SinkResponse)
        return outcome

    @property
    def texts(self) -> list[str]:
        return [t for _chat, t, _mode in self.posts]


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def store(tmp_path: Path) -> SqliteMonitorStore:
    s = SqliteMonitorStore(str(tmp_path / "heartbeat.db"))
    s.ensure_schema()
    return s


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


def make_sender(sink: FakeSink, sleep: RecordingSleep) -> NotificationSender:
    return NotificationSender(sink, "chat-1", sleep=sleep)

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

import httpx
import structlog

from heartbeat.errors import DeliveryError


logger = structlog.get_logger(__name__)

PARSE_MODE = "MarkdownV2"

# Sleep before each attempt; the first attempt goes out immediately.
RETRY_DELAYS_SECONDS: tuple[float, ...] = (0.0, 0.5, 2.0, 5.0)


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: str
    chat_id: str


@dataclass(frozen=True)
class SinkResponse:
    ok: bool
    description: str = ""


class NotificationSink(Protocol):
    async def post(self, chat_id: str, text: str, parse_mode: str) -> SinkResponse: ...


class TelegramSink:
    """Posts messages to the Telegram Bot API sendMessage endpoint."""

    def __init__(self, client: httpx.AsyncClient, bot_token: str, *, timeout: float = 15.0) -> None:
        self.client = client
        self.bot_token = bot_token
        self.timeout = float(timeout)

    async def post(self, chat_id: str, text: str, parse_mode: str) -> SinkResponse:
        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        payload = {"chat_id": chat_id, "text": text, "parse_mode": parse_mode}
        resp = await self.client.post(url, json=payload, timeout=self.timeout)
        try:
            data = resp.json()
        except ValueError:
            return SinkResponse(ok=False, description=f"status={resp.status_code}, non-JSON response")
        if not isinstance(data, dict):
            return SinkResponse(ok=False, description=f"status={resp.status_code}, unexpected response")
        if data.get("ok"):
            return SinkResponse(ok=True)
        return SinkResponse(ok=False, description=f"status={resp.status_code}, description={data.get('description') or ''}")


class NotificationSender:
    """
    Delivers formatted text to one sink and destination with bounded retries.

    The sink and the sleep function are injected so the retry schedule can be tested
    without network access or real delays.
    """

    def __init__(
        self,
        sink: NotificationSink,
        chat_id: str,
        *,
        parse_mode: str = PARSE_MODE,
        delays: tuple[float, ...] = RETRY_DELAYS_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        redact: str = "",
    ) -> None:
        if not delays:
            raise ValueError("delays must contain at least one entry")
        self.sink = sink
        self.chat_id = chat_id
        self.parse_mode = parse_mode
        self.delays = tuple(delays)
        self.sleep = sleep
        self.redact = redact

    def _redacted(self, msg: str) -> str:
        if self.redact:
            return msg.replace(self.redact, "<redacted>")
        return msg

    async def send(self, text: str) -> None:
        try:
            resp = await self.sink.post(self.chat_id, text, self.parse_mode)
        except Exception as exc:
            raise DeliveryError(self._redacted(f"{type(exc).__name__}: {exc}")) from exc
        if not resp.ok:
            raise DeliveryError(self._redacted(f"sink rejected message: {resp.description}"))

    async def send_with_retry(self, text: str) -> None:
        last_err: DeliveryError | None = None
        for attempt, delay in enumerate(self.delays):
            if attempt > 0:
                logger.warning("notification send failed, retrying", attempt=attempt, delay_seconds=delay, error=str(last_err))
                await self.sleep(delay)
            try:
                await self.send(text)
            except DeliveryError as exc:
                last_err = exc
                continue
            if attempt > 0:
                logger.info("notification send succeeded after retry", attempt=attempt)
            return
        assert last_err is not None
        raise last_err


def build_telegram_sender(client: httpx.AsyncClient, config: TelegramConfig, *, timeout: float = 15.0) -> NotificationSender:
    sink = TelegramSink(client, config.bot_token, timeout=timeout)
    return NotificationSender(sink, config.chat_id, redact=config.bot_token)

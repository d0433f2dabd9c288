"""
Trade and error notifications.

Two parts:
- DiscordNotifier renders events as Discord embeds and POSTs them with a
  small bounded retry (5xx and transport errors only).
- NotificationSink is an in-process outbox. The orchestrator calls emit(),
  which never blocks or raises; a background task drains the queue.

If no webhook is configured, events are logged but not sent.
"""
import asyncio
import ssl
from decimal import Decimal
from typing import Any, Dict, Optional, Union

import aiohttp
import certifi

from src.constants import (
    EMBED_COLOR_ERROR,
    EMBED_COLOR_EXIT,
    EMBED_COLOR_LONG,
    EMBED_COLOR_SHORT,
    NOTIFY_MAX_RETRIES,
    NOTIFY_QUEUE_SIZE,
    NOTIFY_RETRY_DELAY_SECONDS,
)
from src.data.symbol_utils import base_token, format_market_pair
from src.domain.models import DesiredPosition, ErrorEvent, TradeEvent
from src.monitoring.logger import get_logger

logger = get_logger(__name__)

Event = Union[TradeEvent, ErrorEvent]


def _money(value: Optional[Decimal]) -> str:
    if value is None:
        return "N/A"
    return f"${value:,.2f}"


def _title(strategy: str, link: Optional[str]) -> str:
    name = strategy or "Signal"
    return f"📊 **[{name}]({link})**" if link else f"📊 **{name}**"


def _footer(text: str) -> Dict[str, str]:
    return {"text": text, "icon_url": ""}


def _pair_line(market: str, token_emojis: Optional[Dict[str, str]]) -> str:
    pair = format_market_pair(market)
    emoji = (token_emojis or {}).get(base_token(market).upper(), "")
    return f"{emoji} {pair}" if emoji else pair


def render_trade_embed(
    event: TradeEvent,
    footer_text: str = "",
    strategy_link: Optional[str] = None,
    token_emojis: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    Entry (long/short) or exit (flat) embed for a completed trade.

    `token_emojis` maps a base token (BTC) to the emoji shown before the pair.
    """
    pair = _pair_line(event.market, token_emojis)

    if event.desired_position == DesiredPosition.FLAT:
        description = (
            f"{_title(event.strategy, strategy_link)}\n\n"
            f"**Trading Pair:** {pair}\n"
            f"**Trade Action:** Flat at **{_money(event.fill_price)}**"
        )
        color = EMBED_COLOR_EXIT
    else:
        token = base_token(event.market)
        arrow = "↗️" if event.desired_position == DesiredPosition.LONG else "↘️"
        size_usd = event.filled_size * event.fill_price if event.fill_price is not None else None
        description = (
            f"{_title(event.strategy, strategy_link)}\n\n"
            f"**Trading Pair:** {pair}\n"
            f"**Trade Action:** {arrow} {event.desired_position.value.capitalize()} at **{_money(event.fill_price)}**\n"
            f"**Leverage:** {event.leverage}x\n"
            f"**Size in USD:** {_money(size_usd)}\n"
            f"**Size in {token}:** {event.filled_size:.5f} {token}"
        )
        color = EMBED_COLOR_LONG if event.desired_position == DesiredPosition.LONG else EMBED_COLOR_SHORT

    return {"embeds": [{"description": description, "color": color, "footer": _footer(footer_text)}]}


def render_error_embed(event: ErrorEvent, footer_text: str = "") -> Dict[str, Any]:
    description = (
        "❌ **TRADE EXECUTION FAILED**\n\n"
        f"**Strategy:** {event.strategy}\n"
        f"**Exchange:** {event.exchange}\n"
        f"**Market:** {event.market}\n"
        f"**Error:** {event.message}"
    )
    return {"embeds": [{"description": description, "color": EMBED_COLOR_ERROR, "footer": _footer(footer_text)}]}


class DiscordNotifier:
    """Delivers events to a Discord webhook."""

    def __init__(
        self,
        webhook_url: Optional[str],
        *,
        max_retries: int = NOTIFY_MAX_RETRIES,
        retry_delay: float = NOTIFY_RETRY_DELAY_SECONDS,
        footer_text: str = "",
        strategy_link: Optional[str] = None,
        token_emojis: Optional[Dict[str, str]] = None,
    ):
        url = (webhook_url or "").strip()
        self.webhook_url = url if url and not url.startswith("${") else ""
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.footer_text = footer_text
        self.strategy_link = strategy_link
        self.token_emojis = {k.upper(): v for k, v in (token_emojis or {}).items()}
        self._ssl_context: Optional[ssl.SSLContext] = None

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def render(self, event: Event) -> Dict[str, Any]:
        if isinstance(event, ErrorEvent):
            return render_error_embed(event, self.footer_text)
        return render_trade_embed(event, self.footer_text, self.strategy_link, self.token_emojis)

    async def send(self, event: Event) -> bool:
        """
        Deliver one event. Returns True on a 2xx response.

        Never raises for delivery problems.
        """
        if not self.enabled:
            logger.info("Notification (no webhook configured)", event_type=type(event).__name__, instrument=event.instrument)
            return False
        return await self._post_with_retry(self.render(event))

    def _get_ssl_context(self) -> ssl.SSLContext:
        if self._ssl_context is None:
            self._ssl_context = ssl.create_default_context(cafile=certifi.where())
        return self._ssl_context

    async def _post(self, payload: Dict[str, Any]) -> int:
        connector = aiohttp.TCPConnector(ssl=self._get_ssl_context())
        timeout = aiohttp.ClientTimeout(total=10)
        async with aiohttp.ClientSession(connector=connector, timeout=timeout) as session:
            async with session.post(self.webhook_url, json=payload) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    logger.warning("Discord webhook rejected", status=resp.status, body=body[:200])
                return resp.status

    async def _post_with_retry(self, payload: Dict[str, Any]) -> bool:
        for attempt in range(1, self.max_retries + 1):
            try:
                status = await self._post(payload)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt < self.max_retries:
                    logger.warning("Discord webhook error, retrying", attempt=attempt, error=str(e))
                    await asyncio.sleep(self.retry_delay * attempt)
                    continue
                logger.error("Discord webhook failed", attempts=self.max_retries, error=str(e))
                return False

            if 200 <= status < 300:
                return True
            if status >= 500 and attempt < self.max_retries:
                logger.warning("Discord webhook 5xx, retrying", attempt=attempt, status=status)
                await asyncio.sleep(self.retry_delay * attempt)
                continue
            logger.error("Discord webhook failed", status=status, attempt=attempt)
            return False
        return False


class NotificationSink:
    """
    Fire-and-forget outbox between the orchestrator and the notifier.

    emit() only enqueues. Delivery happens on the worker task started by
    start(); stop() delivers whatever is still queued.
    """

    def __init__(self, notifier: DiscordNotifier, queue_size: int = NOTIFY_QUEUE_SIZE):
        self.notifier = notifier
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def emit(self, event: Event) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Notification queue full, dropping event", event_type=type(event).__name__, instrument=event.instrument)

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="notification-sink")
            logger.info("Notification worker started", webhook_enabled=self.notifier.enabled)

    async def stop(self, timeout: float = 10.0) -> None:
        """Deliver queued events (bounded by `timeout`) and stop the worker."""
        if self._worker is not None and not self._worker.done():
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Notification drain timed out", pending=self._queue.qsize())
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
            return

        while not self._queue.empty():
            await self._deliver(self._queue.get_nowait())
            self._queue.task_done()

    async def _deliver(self, event: Event) -> None:
        try:
            await self.notifier.send(event)
        except Exception as e:
            # Delivery problems must never reach the reconciliation
            logger.warning("Notification send failed (non-fatal)", event_type=type(event).__name__, error=str(e))

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

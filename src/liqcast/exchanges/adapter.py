"""Persistent WebSocket connection driving one liquidation feed."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

import aiohttp

from ..channel import AdapterChannel, AdapterEvent, AdapterLog
from ..errors import ChannelClosedError
from ..events import NormalizedEvent, now_ms
from .protocol import AdapterState, LiquidationFeed

logger = logging.getLogger(__name__)

RECONNECT_BASE_MS = 1000
RECONNECT_CAP_MS = 30_000
DEFAULT_KEEPALIVE_S = 60.0

# Plain-text heartbeats some venues send outside of JSON framing
_PLAIN_HEARTBEATS = {"ping", "pong"}


def reconnect_delay_ms(attempt: int, base_ms: int = RECONNECT_BASE_MS, cap_ms: int = RECONNECT_CAP_MS) -> int:
    """Exponential backoff: base * 2^attempt, capped.

    >>> [reconnect_delay_ms(n) for n in range(7)]
    [1000, 2000, 4000, 8000, 16000, 30000, 30000]
    """
    if attempt >= 32:
        return cap_ms
    return min(cap_ms, base_ms * (2 ** max(0, attempt)))


class ExchangeAdapter:
    """Keeps one exchange stream connected and publishes what it parses.

    State machine: DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED,
    with CLOSING on deliberate shutdown. After a drop the adapter waits
    :func:`reconnect_delay_ms` of ``attempt_count`` and then increments it;
    a successful connect resets it to zero.
    """

    def __init__(
        self,
        feed: LiquidationFeed,
        channel: AdapterChannel,
        *,
        min_notional_usd: float = 0.0,
        keepalive_interval_s: float = DEFAULT_KEEPALIVE_S,
        session: aiohttp.ClientSession | None = None,
        proxy: str | None = None,
        reconnect_base_ms: int = RECONNECT_BASE_MS,
        reconnect_cap_ms: int = RECONNECT_CAP_MS,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.feed = feed
        self.name = feed.name
        self.channel = channel
        self.min_notional_usd = min_notional_usd
        self.keepalive_interval_s = keepalive_interval_s
        self.reconnect_base_ms = reconnect_base_ms
        self.reconnect_cap_ms = reconnect_cap_ms

        self.state = AdapterState.DISCONNECTED
        self.attempt_count = 0
        self.events_emitted = 0
        self.events_filtered = 0

        self._session = session
        self._proxy = proxy
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or now_ms
        self._closing = False
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._task: asyncio.Task | None = None
        self._keepalive_task: asyncio.Task | None = None
        self._maintenance_task: asyncio.Task | None = None

    def start(self) -> asyncio.Task:
        """Spawn :meth:`run` as a task; events flow out through the channel."""
        if self._task is None or self._task.done():
            self._closing = False
            self._task = asyncio.create_task(self.run(), name=f"adapter:{self.name}")
        return self._task

    async def stop(self, timeout: float = 5.0) -> None:
        """Deliberate shutdown: no reconnect is scheduled afterwards."""
        self._closing = True
        self._set_state(AdapterState.CLOSING)

        ws = self._ws
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except Exception as exc:
                logger.debug("[%s] close failed: %s", self.name, exc)

        task = self._task
        if task is not None and task is not asyncio.current_task():
            if ws is None:
                # not connected: the task is connecting or waiting to reconnect
                task.cancel()
            done, _ = await asyncio.wait({task}, timeout=timeout)
            if not done:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._task = None
        await self._cancel_timers()
        self._set_state(AdapterState.DISCONNECTED)

    async def run(self) -> None:
        owns_session = self._session is None
        session = self._session or aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=30)
        )
        try:
            while not self._closing:
                await self._connect_once(session)
                if self._closing:
                    break

                self._set_state(AdapterState.DISCONNECTED)
                delay = reconnect_delay_ms(
                    self.attempt_count, self.reconnect_base_ms, self.reconnect_cap_ms
                )
                self._log(logging.WARNING, f"closed, reconnecting in {delay}ms")
                self.attempt_count += 1
                await self._sleep(delay / 1000)
        finally:
            if self.state is not AdapterState.CLOSING:
                self._set_state(AdapterState.DISCONNECTED)
            if owns_session:
                await session.close()

    async def _connect_once(self, session: aiohttp.ClientSession) -> None:
        self._set_state(AdapterState.CONNECTING)
        try:
            await self.feed.prepare(session)
            async with session.ws_connect(self.feed.url, proxy=self._proxy) as ws:
                self._ws = ws
                await self._on_open(ws, session)
                await self._receive(ws)
                if not self._closing:
                    self._log(logging.WARNING, f"connection closed code={ws.close_code}")
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            self._log(logging.ERROR, f"ws error: {exc}")
        except Exception as exc:
            logger.exception("[%s] unexpected adapter error", self.name)
            self._log(logging.ERROR, f"unexpected error: {exc}")
        finally:
            self._ws = None
            await self._cancel_timers()

    async def _on_open(self, ws: aiohttp.ClientWebSocketResponse, session: aiohttp.ClientSession) -> None:
        self._set_state(AdapterState.CONNECTED)
        self.attempt_count = 0
        self._log(logging.INFO, "connected")

        for payload in self.feed.subscriptions():
            self._log(logging.INFO, f"sending subscribe: {json.dumps(payload)[:300]}")
            await self._send_json(ws, payload)

        self._keepalive_task = asyncio.create_task(
            self._keepalive_loop(ws), name=f"keepalive:{self.name}"
        )
        maintenance = self.feed.maintenance(session)
        if maintenance is not None:
            self._maintenance_task = asyncio.create_task(
                maintenance, name=f"maintenance:{self.name}"
            )

    async def _receive(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                await self._handle_text(ws, msg.data)
            elif msg.type == aiohttp.WSMsgType.BINARY:
                try:
                    text = msg.data.decode("utf-8")
                except UnicodeDecodeError as exc:
                    self._log(logging.ERROR, f"undecodable binary frame: {exc}")
                    continue
                await self._handle_text(ws, text)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                self._log(logging.ERROR, f"ws error: {ws.exception()}")
                break

    async def _handle_text(self, ws: aiohttp.ClientWebSocketResponse, raw: str) -> None:
        if raw.strip() in _PLAIN_HEARTBEATS:
            return
        try:
            message: Any = json.loads(raw)
        except ValueError as exc:
            self._log(logging.ERROR, f"JSON parse error: {exc} raw={raw[:300]}")
            return

        received = int(self._clock())
        try:
            output = self.feed.handle(message, received)
        except Exception as exc:
            self._log(logging.ERROR, f"parse error: {exc}")
            return

        for reply in output.replies:
            await self._send_json(ws, reply)
        for notice in output.notices:
            self._log(logging.INFO, notice)
        for error in output.errors:
            self._log(logging.ERROR, error)
        for event in output.events:
            self._emit(event)

    def _emit(self, event: NormalizedEvent) -> None:
        if event.notional_usd < self.min_notional_usd:
            self.events_filtered += 1
            return
        try:
            accepted = self.channel.publish(AdapterEvent(event=event, rendered_text=event.render()))
        except ChannelClosedError:
            logger.debug("[%s] channel closed, event discarded", self.name)
            return
        if accepted:
            self.events_emitted += 1
        else:
            logger.debug("[%s] channel full, event dropped", self.name)

    async def _send_json(self, ws: aiohttp.ClientWebSocketResponse, payload: dict[str, Any]) -> None:
        try:
            await ws.send_str(json.dumps(payload))
        except Exception as exc:
            self._log(logging.ERROR, f"send failed: {exc}")

    async def _keepalive_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        interval = self.feed.keepalive_interval_s or self.keepalive_interval_s
        while True:
            await asyncio.sleep(interval)
            try:
                await self.feed.keepalive(ws)
            except Exception as exc:
                self._log(logging.ERROR, f"keepalive error: {exc}")

    async def _cancel_timers(self) -> None:
        for attr in ("_keepalive_task", "_maintenance_task"):
            task: asyncio.Task | None = getattr(self, attr)
            setattr(self, attr, None)
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                logger.debug("[%s] %s ended with %s", self.name, attr, exc)

    def _set_state(self, state: AdapterState) -> None:
        if state is self.state:
            return
        logger.debug("[%s] state %s -> %s", self.name, self.state.value, state.value)
        self.state = state

    def _log(self, level: int, message: str) -> None:
        """Report through the channel so the supervisor owns log output."""
        if not self.channel.closed:
            try:
                if self.channel.publish(AdapterLog(exchange=self.name, level=level, message=message)):
                    return
            except ChannelClosedError:
                pass
        logger.log(level, "[%s] %s", self.name, message)

"""Tests for the exchange adapter connection state machine."""

import asyncio
import json
import logging
from types import SimpleNamespace

import aiohttp
import pytest

from liqcast.channel import AdapterChannel, AdapterEvent, AdapterLog
from liqcast.exchanges.adapter import ExchangeAdapter, reconnect_delay_ms
from liqcast.exchanges.binance import BinanceFeed
from liqcast.exchanges.bybit import BybitFeed
from liqcast.exchanges.protocol import AdapterState


def text_frame(payload):
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data)


class FakeWebSocket:
    """Replays a fixed list of frames, then behaves like a closed socket."""

    def __init__(self, frames, fail_sends=False):
        self.frames = list(frames)
        self.sent = []
        self.closed = False
        self.close_code = 1000
        self.fail_sends = fail_sends

    async def send_str(self, data):
        if self.fail_sends:
            raise ConnectionResetError("socket gone")
        self.sent.append(json.loads(data))

    async def ping(self):
        return None

    async def close(self):
        self.closed = True

    def exception(self):
        return None

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed or not self.frames:
            raise StopAsyncIteration
        return self.frames.pop(0)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True


class FakeSession:
    """``ws_connect`` hands out queued sockets or raises queued errors."""

    def __init__(self, connections):
        self.connections = list(connections)
        self.urls = []

    def ws_connect(self, url, **kwargs):
        self.urls.append(url)
        item = self.connections.pop(0) if self.connections else aiohttp.ClientConnectionError("refused")
        if isinstance(item, Exception):
            raise item
        return item


async def drain(channel):
    """Close the channel and collect everything it buffered."""
    channel.close()
    return [message async for message in channel]


def make_adapter(feed, channel, session, *, stop_after, delays, **kwargs):
    adapter = None

    async def sleep(seconds):
        delays.append(round(seconds * 1000))
        if len(delays) >= stop_after:
            await adapter.stop()

    adapter = ExchangeAdapter(feed, channel, session=session, sleep=sleep, clock=lambda: 1_700_000_001_000, **kwargs)
    return adapter


class TestReconnectDelay:
    """Tests for the backoff schedule."""

    def test_sequence(self):
        assert [reconnect_delay_ms(n) for n in range(8)] == [1000, 2000, 4000, 8000, 16000, 30000, 30000, 30000]

    def test_custom_base_and_cap(self):
        assert reconnect_delay_ms(0, base_ms=500, cap_ms=3000) == 500
        assert reconnect_delay_ms(3, base_ms=500, cap_ms=3000) == 3000

    def test_huge_attempt_is_capped(self):
        assert reconnect_delay_ms(10_000) == 30000


class TestReconnect:
    """Tests for reconnect scheduling."""

    @pytest.mark.asyncio
    async def test_consecutive_failures_back_off(self, channel):
        delays = []
        session = FakeSession([])
        adapter = make_adapter(BinanceFeed(), channel, session, stop_after=7, delays=delays)

        await adapter.run()

        assert delays == [1000, 2000, 4000, 8000, 16000, 30000, 30000]
        assert adapter.attempt_count == 7
        assert adapter.state is AdapterState.DISCONNECTED
        assert len(session.urls) == 7
        errors = [m for m in (await drain(channel)) if isinstance(m, AdapterLog) and m.level == logging.ERROR]
        assert len(errors) == 7

    @pytest.mark.asyncio
    async def test_successful_connect_resets_attempts(self, channel):
        delays = []
        session = FakeSession([aiohttp.ClientConnectionError("refused"), FakeWebSocket([])])
        adapter = make_adapter(BinanceFeed(), channel, session, stop_after=2, delays=delays)

        await adapter.run()

        assert delays == [1000, 1000]

    @pytest.mark.asyncio
    async def test_stop_interrupts_reconnect_wait(self, channel):
        adapter = ExchangeAdapter(BinanceFeed(), channel, session=FakeSession([]), reconnect_base_ms=60_000)
        task = adapter.start()
        await asyncio.sleep(0.05)
        assert adapter.state is AdapterState.DISCONNECTED

        await asyncio.wait_for(adapter.stop(), timeout=2)

        assert task.done()
        assert adapter.state is AdapterState.DISCONNECTED


class TestConnected:
    """Tests for message handling while connected."""

    @pytest.mark.asyncio
    async def test_events_are_filtered_and_published(self, channel, binance_force_order):
        small = {"e": "forceOrder", "o": {"s": "ETHUSDT", "S": "BUY", "z": "1", "ap": "2000"}}
        ws = FakeWebSocket(
            [
                text_frame(small),
                text_frame("{not json"),
                text_frame("pong"),
                text_frame(binance_force_order),
            ]
        )
        delays = []
        adapter = make_adapter(
            BinanceFeed(), channel, FakeSession([ws]), stop_after=1, delays=delays, min_notional_usd=100_000
        )

        await adapter.run()

        messages = await drain(channel)
        events = [m for m in messages if isinstance(m, AdapterEvent)]
        assert len(events) == 1
        assert events[0].event.notional_usd == 162500
        assert events[0].rendered_text == events[0].event.render()
        assert adapter.events_filtered == 1
        assert adapter.events_emitted == 1

        logs = [m.message for m in messages if isinstance(m, AdapterLog)]
        assert "connected" in logs
        assert any("JSON parse error" in message for message in logs)

    @pytest.mark.asyncio
    async def test_subscribes_and_answers_pings(self, channel, bybit_liquidation):
        ws = FakeWebSocket([text_frame({"op": "ping", "ts": 42}), text_frame(bybit_liquidation)])
        adapter = make_adapter(BybitFeed(symbols=["ETHUSDT"]), channel, FakeSession([ws]), stop_after=1, delays=[])

        await adapter.run()

        assert ws.sent[0] == {"op": "subscribe", "args": ["allLiquidation.ETHUSDT"]}
        assert ws.sent[1] == {"op": "pong", "ts": 42}
        assert len([m for m in (await drain(channel)) if isinstance(m, AdapterEvent)]) == 2

    @pytest.mark.asyncio
    async def test_send_failures_do_not_escape(self, channel, bybit_liquidation):
        ws = FakeWebSocket([text_frame({"op": "ping"}), text_frame(bybit_liquidation)], fail_sends=True)
        adapter = make_adapter(BybitFeed(symbols=["ETHUSDT"]), channel, FakeSession([ws]), stop_after=1, delays=[])

        await adapter.run()

        messages = await drain(channel)
        assert len([m for m in messages if isinstance(m, AdapterEvent)]) == 2
        assert any(isinstance(m, AdapterLog) and "send failed" in m.message for m in messages)

    @pytest.mark.asyncio
    async def test_feed_exception_is_logged(self, channel):
        class ExplodingFeed(BinanceFeed):
            def handle(self, message, received_ms):
                raise RuntimeError("boom")

        ws = FakeWebSocket([text_frame({"e": "forceOrder"})])
        adapter = make_adapter(ExplodingFeed(), channel, FakeSession([ws]), stop_after=1, delays=[])

        await adapter.run()

        assert any(isinstance(m, AdapterLog) and "parse error: boom" in m.message for m in (await drain(channel)))

    @pytest.mark.asyncio
    async def test_closed_channel_does_not_break_adapter(self, binance_force_order):
        channel = AdapterChannel(maxsize=10)
        channel.close()
        ws = FakeWebSocket([text_frame(binance_force_order)])
        adapter = make_adapter(BinanceFeed(), channel, FakeSession([ws]), stop_after=1, delays=[])

        await adapter.run()

        assert adapter.events_emitted == 0


class HoldingWebSocket(FakeWebSocket):
    """Stays open until ``hang_up`` is called and counts transport pings."""

    def __init__(self):
        super().__init__([])
        self.pings = 0
        self._hung_up = asyncio.Event()

    async def ping(self):
        self.pings += 1

    def hang_up(self):
        self._hung_up.set()

    async def __anext__(self):
        await self._hung_up.wait()
        raise StopAsyncIteration


class MaintainedFeed(BinanceFeed):
    """Binance feed with a background refresh that runs until cancelled."""

    def __init__(self):
        super().__init__()
        self.maintenance_cancelled = False

    def maintenance(self, session):
        return self._refresh_forever()

    async def _refresh_forever(self):
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.maintenance_cancelled = True
            raise


async def wait_until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        assert asyncio.get_running_loop().time() < deadline, "condition not reached"
        await asyncio.sleep(0.005)


class TestTimers:
    """Tests for keepalive and maintenance task lifecycle."""

    @pytest.mark.asyncio
    async def test_timers_run_while_connected_and_stop_on_disconnect(self, channel):
        ws = HoldingWebSocket()
        feed = MaintainedFeed()
        adapter = ExchangeAdapter(
            feed,
            channel,
            session=FakeSession([ws]),
            keepalive_interval_s=0.01,
            reconnect_base_ms=60_000,
        )
        adapter.start()

        await wait_until(lambda: ws.pings >= 3)
        assert adapter.state is AdapterState.CONNECTED
        assert adapter._keepalive_task is not None
        assert adapter._maintenance_task is not None

        ws.hang_up()
        await wait_until(lambda: adapter.state is AdapterState.DISCONNECTED)
        pings_at_disconnect = ws.pings
        await asyncio.sleep(0.05)

        assert ws.pings == pings_at_disconnect
        assert adapter._keepalive_task is None
        assert adapter._maintenance_task is None
        assert feed.maintenance_cancelled is True

        await adapter.stop()
        assert adapter.state is AdapterState.DISCONNECTED

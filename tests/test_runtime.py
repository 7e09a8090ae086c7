"""Tests for the supervisor runtime and container wiring."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from liqcast.channel import AdapterChannel, AdapterEvent, AdapterLog
from liqcast.di import AppContainer, build_container
from liqcast.dispatch import RateLimitedDispatcher
from liqcast.events import NormalizedEvent, Side
from liqcast.notifiers import DryRunNotifier
from liqcast.runtime import route_messages, run, supervise_adapter
from liqcast.settings import Settings


def _event_message(notional):
    event = NormalizedEvent.create(
        exchange="binance", symbol="BTC", side=Side.LONG, price=65000.0, quantity=notional / 65000, notional_usd=notional
    )
    return AdapterEvent(event=event, rendered_text=event.render())


class IdleAdapter:
    """Adapter double that runs until stopped."""

    name = "idle"

    def __init__(self):
        self._stopped = asyncio.Event()
        self.stopped = False

    def start(self):
        return asyncio.create_task(self._stopped.wait())

    async def stop(self):
        self.stopped = True
        self._stopped.set()


class TestRouteMessages:
    """Tests for fan-out from the adapter channel to dispatchers."""

    @pytest.mark.asyncio
    async def test_per_channel_thresholds(self, caplog):
        settings = Settings(x={"min_notional_usd": 100_000})
        channel = AdapterChannel()
        telegram = RateLimitedDispatcher("telegram", AsyncMock())
        x = RateLimitedDispatcher("x", AsyncMock())
        container = AppContainer(settings=settings, channel=channel, dispatchers={"telegram": telegram, "x": x})

        channel.publish(AdapterLog(exchange="okx", level=logging.WARNING, message="reconnecting"))
        channel.publish(_event_message(50_000))
        channel.publish(_event_message(200_000))
        channel.close()

        with caplog.at_level(logging.INFO, logger="liqcast.runtime"):
            await route_messages(container)

        assert telegram.queue.size() == 2
        assert x.queue.size() == 1
        assert x.queue.peek().priority == 200_000
        assert any("[okx] reconnecting" in r.getMessage() for r in caplog.records)


class TestSuperviseAdapter:
    """Tests for restarting adapters that die."""

    @pytest.mark.asyncio
    async def test_crashed_adapter_is_restarted(self):
        shutdown = asyncio.Event()

        class FlakyAdapter:
            name = "flaky"
            starts = 0

            def start(self):
                self.starts += 1
                return asyncio.create_task(self._run())

            async def _run(self):
                if self.starts == 1:
                    raise RuntimeError("crash")
                shutdown.set()

        adapter = FlakyAdapter()
        await asyncio.wait_for(supervise_adapter(adapter, shutdown, restart_delay_s=0.01), timeout=2)

        assert adapter.starts == 2


class TestRun:
    """Tests for the full runtime lifecycle."""

    @pytest.mark.asyncio
    async def test_no_adapters_returns(self):
        container = AppContainer(settings=Settings(), channel=AdapterChannel())
        await asyncio.wait_for(run(container), timeout=1)

    @pytest.mark.asyncio
    async def test_event_reaches_notifier_and_shutdown_cleans_up(self):
        adapter = IdleAdapter()
        notifier = DryRunNotifier("telegram")
        notifier.close = AsyncMock()
        dispatcher = RateLimitedDispatcher("telegram", notifier.send, min_interval_ms=0)
        container = AppContainer(
            settings=Settings(),
            channel=AdapterChannel(),
            adapters={"idle": adapter},
            notifiers={"telegram": notifier},
            dispatchers={"telegram": dispatcher},
        )
        message = _event_message(162_500)

        async def drive():
            container.channel.publish(message)
            for _ in range(100):
                if notifier.sent:
                    break
                await asyncio.sleep(0.01)
            container.shutdown.set()

        driver = asyncio.create_task(drive())
        await asyncio.wait_for(run(container), timeout=5)
        await driver

        assert list(notifier.sent) == [message.rendered_text]
        assert adapter.stopped
        assert container.channel.closed
        assert not dispatcher.running
        notifier.close.assert_awaited_once()


def test_build_container_dry_run():
    settings = Settings(telegram={"enabled": True}, x={"enabled": True, "capacity": 50})
    container = build_container(settings, dry_run=True)

    assert set(container.adapters) == {"binance", "bybit", "okx", "gate"}
    assert set(container.dispatchers) == {"telegram", "x"}
    assert all(isinstance(n, DryRunNotifier) for n in container.notifiers.values())
    assert container.dispatchers["x"].queue.capacity == 50
    assert container.dispatchers["x"].min_interval_ms == 2000
    assert container.dispatchers["telegram"].min_interval_ms == 1200

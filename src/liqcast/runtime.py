from __future__ import annotations

import asyncio
import logging
import signal

from .channel import AdapterEvent, AdapterLog
from .di import AppContainer
from .exchanges.adapter import ExchangeAdapter
from .notifiers.factory import channel_settings

logger = logging.getLogger(__name__)


async def run(container: AppContainer) -> None:
    logger.info("runtime starting")
    logger.debug("settings=%s", container.settings.redacted())

    if not container.adapters:
        logger.error("no exchange adapters configured; enable at least one exchange")
        await asyncio.sleep(0)
        logger.info("runtime stopped")
        return

    if not container.dispatchers:
        logger.warning("no outbound channels enabled; liquidations will only be logged")

    _install_signal_handlers(container.shutdown)
    for dispatcher in container.dispatchers.values():
        dispatcher.start()

    try:
        async with asyncio.TaskGroup() as tg:
            for name, adapter in container.adapters.items():
                tg.create_task(
                    supervise_adapter(adapter, container.shutdown, container.settings.pipeline.restart_delay_s),
                    name=f"supervise:{name}",
                )
            tg.create_task(route_messages(container), name="router")

            await container.shutdown.wait()
            logger.info("shutdown requested, stopping %d adapters", len(container.adapters))
            await asyncio.gather(*(adapter.stop() for adapter in container.adapters.values()))
            container.channel.close()
    finally:
        for dispatcher in container.dispatchers.values():
            await dispatcher.stop()
        for notifier in container.notifiers.values():
            await notifier.close()

    logger.info("runtime stopped")


async def supervise_adapter(adapter: ExchangeAdapter, shutdown: asyncio.Event, restart_delay_s: float) -> None:
    """Keep ``adapter`` running until shutdown, restarting it if its task dies."""
    while not shutdown.is_set():
        task = adapter.start()
        try:
            await task
        except asyncio.CancelledError:
            # the adapter task was cancelled by stop(), not this supervisor
            if asyncio.current_task().cancelling():
                raise
        except Exception:
            logger.exception("[%s] adapter crashed", adapter.name)

        if shutdown.is_set():
            return
        logger.warning("[%s] adapter exited, restarting in %.1fs", adapter.name, restart_delay_s)
        try:
            await asyncio.wait_for(shutdown.wait(), timeout=restart_delay_s)
        except asyncio.TimeoutError:
            continue


async def route_messages(container: AppContainer) -> None:
    """Log adapter output and fan liquidation lines out to every dispatcher."""
    thresholds = {
        name: channel_settings(container.settings, name).min_notional_usd
        for name in container.dispatchers
    }

    async for message in container.channel:
        if isinstance(message, AdapterLog):
            logger.log(message.level, "[%s] %s", message.exchange, message.message)
            continue

        if not isinstance(message, AdapterEvent):
            continue

        logger.info("[%s] %s", message.exchange, message.rendered_text)
        notional = message.event.notional_usd
        for name, dispatcher in container.dispatchers.items():
            if notional < thresholds[name]:
                continue
            dispatcher.enqueue(message.rendered_text, notional)

    logger.debug("adapter channel closed, router exiting")


def _install_signal_handlers(shutdown: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except (NotImplementedError, RuntimeError, ValueError):
            # Windows event loops, or not running in the main thread
            logger.debug("signal handler for %s not installed", sig)

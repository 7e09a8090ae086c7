from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .channel import AdapterChannel
from .dispatch import RateLimitedDispatcher
from .exchanges.adapter import ExchangeAdapter
from .notifiers import Notifier
from .notifiers.factory import channel_settings

if TYPE_CHECKING:
    from .settings import Settings


@dataclass(slots=True)
class AppContainer:
    settings: "Settings"
    channel: AdapterChannel
    shutdown: asyncio.Event = field(default_factory=asyncio.Event)
    adapters: dict[str, ExchangeAdapter] = field(default_factory=dict)
    notifiers: dict[str, Notifier] = field(default_factory=dict)
    dispatchers: dict[str, RateLimitedDispatcher] = field(default_factory=dict)


def build_dispatcher(settings: "Settings", name: str, notifier: Notifier) -> RateLimitedDispatcher:
    cfg = channel_settings(settings, name)
    return RateLimitedDispatcher(
        name,
        notifier.send,
        capacity=cfg.capacity,
        min_interval_ms=cfg.min_interval_ms,
        rate_limit_pause_ms=cfg.rate_limit_pause_ms,
        eviction_log_level=getattr(logging, cfg.eviction_log_level),
    )


def build_container(
    settings: "Settings",
    *,
    channel: AdapterChannel | None = None,
    adapters: dict[str, ExchangeAdapter] | None = None,
    notifiers: dict[str, Notifier] | None = None,
    dry_run: bool = False,
) -> AppContainer:
    """Build application container: adapters feed one channel, one dispatcher per notifier."""
    if channel is None:
        channel = AdapterChannel(
            maxsize=settings.pipeline.channel_size,
            overflow=settings.pipeline.channel_overflow,
        )
    if adapters is None:
        from .exchanges.init import create_adapters_from_settings

        adapters = create_adapters_from_settings(settings, channel)
    if notifiers is None:
        from .notifiers import build_notifiers

        notifiers = build_notifiers(settings, dry_run=dry_run)

    dispatchers = {name: build_dispatcher(settings, name, notifier) for name, notifier in notifiers.items()}
    return AppContainer(
        settings=settings,
        channel=channel,
        adapters=adapters,
        notifiers=notifiers,
        dispatchers=dispatchers,
    )

"""Exchange adapter initialization from settings."""

from __future__ import annotations

import logging
from typing import Dict

from ..channel import AdapterChannel
from ..errors import ConfigurationError
from ..settings import Settings
from .adapter import ExchangeAdapter
from .factory import create_feed

logger = logging.getLogger(__name__)


def create_adapters_from_settings(settings: Settings, channel: AdapterChannel) -> Dict[str, ExchangeAdapter]:
    """Create one adapter per enabled exchange, all publishing into ``channel``."""
    adapters: Dict[str, ExchangeAdapter] = {}
    proxy = settings.proxy.proxy_url

    for exchange_name, exchange_config in settings.exchanges.items():
        if not exchange_config.enabled:
            logger.debug("Exchange %s is disabled, skipping", exchange_name)
            continue

        try:
            feed = create_feed(exchange_name, url=exchange_config.url, **exchange_config.options)
        except (ValueError, ConfigurationError) as e:
            logger.error("Failed to initialize feed for %s: %s", exchange_name, e)
            continue

        adapters[exchange_name] = ExchangeAdapter(
            feed,
            channel,
            min_notional_usd=settings.min_notional_for(exchange_name),
            keepalive_interval_s=settings.pipeline.keepalive_interval_s,
            reconnect_base_ms=settings.pipeline.reconnect_base_ms,
            reconnect_cap_ms=settings.pipeline.reconnect_cap_ms,
            proxy=proxy,
        )
        logger.info(
            "Initialized %s adapter (min notional $%s)", exchange_name, settings.min_notional_for(exchange_name)
        )

    return adapters

"""Build outbound channels from settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import ConfigurationError
from .base import Notifier
from .dry_run import DryRunNotifier
from .telegram import TelegramNotifier
from .x import XNotifier

if TYPE_CHECKING:
    from ..settings import ChannelSettings, Settings

logger = logging.getLogger(__name__)

CHANNEL_NAMES = ("telegram", "x")


def channel_settings(settings: "Settings", name: str) -> "ChannelSettings":
    if name not in CHANNEL_NAMES:
        raise ValueError(f"Unknown channel: {name}. Supported channels: {', '.join(CHANNEL_NAMES)}")
    return getattr(settings, name)


def create_notifier(settings: "Settings", name: str, *, dry_run: bool = False) -> Notifier:
    """Create the notifier for channel ``name``.

    Args:
        settings: Application settings
        name: ``telegram`` or ``x``
        dry_run: Log instead of sending, regardless of the channel's own flag

    Raises:
        ValueError: If the channel name is unknown
        ConfigurationError: If credentials are missing
    """
    cfg = channel_settings(settings, name)
    if dry_run or cfg.dry_run:
        return DryRunNotifier(name)

    proxy = settings.proxy.proxy_url
    if name == "telegram":
        tg = settings.telegram
        if tg.bot_token is None or not tg.chat_id:
            raise ConfigurationError("telegram is enabled but bot_token/chat_id are not configured")
        return TelegramNotifier(
            tg.bot_token.get_secret_value(),
            tg.chat_id,
            api_base_url=tg.api_base_url,
            disable_web_page_preview=tg.disable_web_page_preview,
            timeout_s=tg.timeout_s,
            proxy=proxy,
        )

    creds = settings.x.credentials
    if creds is None:
        raise ConfigurationError("x is enabled but credentials are not configured")
    return XNotifier(
        api_key=creds.api_key.get_secret_value(),
        api_secret=creds.api_secret.get_secret_value(),
        access_token=creds.access_token.get_secret_value(),
        access_secret=creds.access_secret.get_secret_value(),
        api_base_url=settings.x.api_base_url,
        timeout_s=settings.x.timeout_s,
        proxy=proxy,
    )


def build_notifiers(settings: "Settings", *, dry_run: bool = False) -> dict[str, Notifier]:
    """Notifiers for every enabled channel; misconfigured channels are skipped."""
    notifiers: dict[str, Notifier] = {}
    for name in CHANNEL_NAMES:
        if not channel_settings(settings, name).enabled:
            logger.debug("Channel %s is disabled, skipping", name)
            continue
        try:
            notifiers[name] = create_notifier(settings, name, dry_run=dry_run)
        except ConfigurationError as e:
            logger.error("Failed to initialize channel %s: %s", name, e)
            continue
        logger.info("Initialized channel %s (%s)", name, type(notifiers[name]).__name__)
    return notifiers

"""Outbound notification channels."""

from .base import HttpNotifier, Notifier
from .dry_run import DryRunNotifier
from .factory import CHANNEL_NAMES, build_notifiers, create_notifier
from .telegram import TelegramNotifier
from .x import XNotifier, oauth1_header

__all__ = [
    "CHANNEL_NAMES",
    "DryRunNotifier",
    "HttpNotifier",
    "Notifier",
    "TelegramNotifier",
    "XNotifier",
    "build_notifiers",
    "create_notifier",
    "oauth1_header",
]

"""Exception hierarchy shared across the pipeline."""

from __future__ import annotations


class LiqcastError(Exception):
    """Base exception for liqcast."""


class ConfigurationError(LiqcastError):
    """Raised when configuration is invalid or incomplete for a component."""


class InstrumentLookupError(LiqcastError):
    """Raised when instrument metadata cannot be fetched from an exchange."""


class ChannelSendError(LiqcastError):
    """Raised by an outbound channel when a message could not be delivered.

    The dispatcher treats this as fatal for the message: it is logged and dropped.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ChannelRateLimited(ChannelSendError):
    """Raised by an outbound channel when the remote service rejected a send with 429.

    ``retry_after_ms`` is the pause the service asked for, or ``None`` when it
    did not say.
    """

    def __init__(self, retry_after_ms: int | None = None, reason: str = "rate limited"):
        super().__init__(reason)
        self.retry_after_ms = retry_after_ms


class ChannelClosedError(LiqcastError):
    """Raised when publishing into a closed adapter channel."""

"""Protocol definition for exchange liquidation feeds."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Protocol

if TYPE_CHECKING:
    import aiohttp

    from ..events import NormalizedEvent


class AdapterState(str, Enum):
    """Connection state of one exchange adapter."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


@dataclass(slots=True)
class FeedOutput:
    """What a feed extracted from one inbound message.

    ``replies`` are sent back on the same connection (protocol pongs);
    ``notices`` and ``errors`` are logged by the adapter; ``skipped`` counts
    liquidation rows that could not produce a valid event.
    """

    events: list["NormalizedEvent"] = field(default_factory=list)
    replies: list[dict[str, Any]] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    skipped: int = 0


class LiquidationFeed(Protocol):
    """Per-exchange description of a liquidation stream.

    A feed knows the endpoint, what to subscribe to, and how to turn one
    decoded message into normalized events. It never touches the network
    itself except through :meth:`prepare` and :meth:`maintenance`.
    """

    name: str
    url: str
    keepalive_interval_s: float | None

    def subscriptions(self) -> list[dict[str, Any]]:
        """Payloads to send right after the connection opens."""
        ...

    def handle(self, message: Any, received_ms: int) -> FeedOutput:
        """Map one decoded JSON message.

        Args:
            message: Decoded JSON payload
            received_ms: Local receive time, upper bound for event timestamps

        Returns:
            FeedOutput with events, protocol replies and log notices
        """
        ...

    async def prepare(self, session: "aiohttp.ClientSession") -> None:
        """Load whatever the feed needs before connecting (e.g. instrument metadata)."""
        ...

    def maintenance(self, session: "aiohttp.ClientSession") -> Awaitable[None] | None:
        """Optional long-running coroutine to run while connected."""
        ...

    async def keepalive(self, ws: "aiohttp.ClientWebSocketResponse") -> None:
        """Send one transport keepalive."""
        ...

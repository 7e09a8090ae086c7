"""Channel that only logs what it would have sent."""

from __future__ import annotations

import logging
from collections import deque

logger = logging.getLogger(__name__)


class DryRunNotifier:
    def __init__(self, name: str):
        self.name = name
        self.sent: deque[str] = deque(maxlen=1000)

    async def send(self, text: str) -> None:
        self.sent.append(text)
        logger.info("[%s] DRY_RUN, not sending: %s", self.name, text)

    async def close(self) -> None:
        return None

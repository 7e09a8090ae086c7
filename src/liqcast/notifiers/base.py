"""Shared plumbing for outbound notification channels."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Protocol

import aiohttp

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """An outbound channel the dispatcher sends rendered lines to.

    ``send`` returns normally on delivery, raises
    :class:`~liqcast.errors.ChannelRateLimited` when the service asked to
    back off and :class:`~liqcast.errors.ChannelSendError` on any other
    failure.
    """

    name: str

    async def send(self, text: str) -> None:
        ...

    async def close(self) -> None:
        ...


class HttpNotifier(ABC):
    """Notifier talking to an HTTP API through one lazily created session."""

    name: str = ""

    def __init__(
        self,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout_s: float = 10.0,
        proxy: str | None = None,
    ):
        self._session = session
        self._owns_session = session is None
        self.timeout = aiohttp.ClientTimeout(total=timeout_s)
        self.proxy = proxy

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    @abstractmethod
    async def send(self, text: str) -> None:
        ...

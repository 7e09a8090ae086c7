"""Telegram Bot API channel."""

from __future__ import annotations

import json
import logging
from typing import Any

import aiohttp

from ..errors import ChannelRateLimited, ChannelSendError, ConfigurationError
from .base import HttpNotifier

logger = logging.getLogger(__name__)


def _retry_after_ms(body: dict[str, Any]) -> int | None:
    parameters = body.get("parameters") or {}
    try:
        seconds = float(parameters.get("retry_after") or 0)
    except (TypeError, ValueError):
        return None
    return int(seconds * 1000) if seconds > 0 else None


class TelegramNotifier(HttpNotifier):
    """Posts each line with ``sendMessage`` to one chat."""

    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        api_base_url: str = "https://api.telegram.org",
        disable_web_page_preview: bool = True,
        **kwargs: Any,
    ):
        if not bot_token or not chat_id:
            raise ConfigurationError("telegram requires bot_token and chat_id")
        super().__init__(**kwargs)
        self.chat_id = chat_id
        self.disable_web_page_preview = disable_web_page_preview
        self._url = f"{api_base_url.rstrip('/')}/bot{bot_token}/sendMessage"

    async def send(self, text: str) -> None:
        session = await self._ensure_session()
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "disable_web_page_preview": self.disable_web_page_preview,
        }
        try:
            async with session.post(self._url, json=payload, proxy=self.proxy) as resp:
                if resp.status == 200:
                    return
                body_text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, TimeoutError) as e:
            raise ChannelSendError(f"telegram request failed: {e}") from e

        try:
            body = json.loads(body_text)
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if status == 429:
            raise ChannelRateLimited(_retry_after_ms(body), reason=f"telegram 429: {body.get('description', '')}")
        raise ChannelSendError(f"telegram send error {status}: {body_text[:300]}")

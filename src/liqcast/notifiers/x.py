"""X (Twitter) API v2 channel with OAuth 1.0a user-context signing."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
import time
from typing import Any, Callable
from urllib.parse import quote

import aiohttp

from ..errors import ChannelRateLimited, ChannelSendError
from .base import HttpNotifier

logger = logging.getLogger(__name__)

TWEETS_PATH = "/2/tweets"


def _pct(value: str) -> str:
    return quote(str(value), safe="~")


def oauth1_header(
    method: str,
    url: str,
    *,
    api_key: str,
    api_secret: str,
    access_token: str,
    access_secret: str,
    nonce: str | None = None,
    timestamp: int | None = None,
) -> str:
    """Build an OAuth 1.0a ``Authorization`` header (HMAC-SHA1).

    JSON bodies are not part of the signature, so only the oauth_* parameters
    are signed.
    """
    params = {
        "oauth_consumer_key": api_key,
        "oauth_nonce": nonce or secrets.token_hex(16),
        "oauth_signature_method": "HMAC-SHA1",
        "oauth_timestamp": str(timestamp if timestamp is not None else int(time.time())),
        "oauth_token": access_token,
        "oauth_version": "1.0",
    }
    param_string = "&".join(f"{_pct(k)}={_pct(v)}" for k, v in sorted(params.items()))
    base_string = "&".join([method.upper(), _pct(url), _pct(param_string)])
    signing_key = f"{_pct(api_secret)}&{_pct(access_secret)}"
    signature = base64.b64encode(
        hmac.new(signing_key.encode(), base_string.encode(), hashlib.sha1).digest()
    ).decode()
    params["oauth_signature"] = signature
    return "OAuth " + ", ".join(f'{_pct(k)}="{_pct(v)}"' for k, v in sorted(params.items()))


class XNotifier(HttpNotifier):
    """Posts each line as a tweet."""

    name = "x"

    def __init__(
        self,
        *,
        api_key: str,
        api_secret: str,
        access_token: str,
        access_secret: str,
        api_base_url: str = "https://api.twitter.com",
        clock: Callable[[], float] | None = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._credentials = {
            "api_key": api_key,
            "api_secret": api_secret,
            "access_token": access_token,
            "access_secret": access_secret,
        }
        self._url = f"{api_base_url.rstrip('/')}{TWEETS_PATH}"
        self._clock = clock or time.time

    def _retry_after_ms(self, headers: Any) -> int | None:
        reset = headers.get("x-rate-limit-reset")
        if not reset:
            return None
        try:
            delta = float(reset) - self._clock()
        except (TypeError, ValueError):
            return None
        return int(delta * 1000) if delta > 0 else None

    async def send(self, text: str) -> None:
        session = await self._ensure_session()
        headers = {
            "Authorization": oauth1_header("POST", self._url, **self._credentials),
            "Content-Type": "application/json",
        }
        try:
            async with session.post(self._url, json={"text": text}, headers=headers, proxy=self.proxy) as resp:
                status = resp.status
                if status in (200, 201):
                    data = await resp.json(content_type=None)
                    tweet_id = ((data or {}).get("data") or {}).get("id")
                    logger.info(
                        "[x] sent ok id=%s remaining=%s",
                        tweet_id,
                        resp.headers.get("x-rate-limit-remaining"),
                    )
                    return
                body_text = await resp.text()
                retry_after = self._retry_after_ms(resp.headers) if status == 429 else None
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            raise ChannelSendError(f"x request failed: {e}") from e

        if status == 429:
            raise ChannelRateLimited(retry_after, reason="x 429 Too Many Requests")
        raise ChannelSendError(f"x send error {status}: {body_text[:300]}")

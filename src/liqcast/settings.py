from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr

LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class ProxySettings(BaseModel):
    enabled: bool = False
    url: str | None = None
    username: str | None = None
    password: SecretStr | None = None

    model_config = {"extra": "forbid"}

    @property
    def proxy_url(self) -> str | None:
        if not self.enabled or not self.url:
            return None
        if self.username and self.password:
            protocol, _, rest = self.url.partition("://") if "://" in self.url else ("http", "", self.url)
            return f"{protocol}://{self.username}:{self.password.get_secret_value()}@{rest}"
        return self.url


class PipelineSettings(BaseModel):
    min_notional_usd: float = Field(default=100.0, ge=0)
    channel_size: int = Field(default=1000, gt=0)
    channel_overflow: Literal["drop_oldest", "drop_newest"] = "drop_oldest"
    keepalive_interval_s: float = Field(default=60.0, gt=0)
    restart_delay_s: float = Field(default=2.0, ge=0)
    reconnect_base_ms: int = Field(default=1000, gt=0)
    reconnect_cap_ms: int = Field(default=30_000, gt=0)

    model_config = {"extra": "forbid"}


class ExchangeSettings(BaseModel):
    enabled: bool = True
    min_notional_usd: float | None = Field(default=None, ge=0)
    url: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}


class ChannelSettings(BaseModel):
    enabled: bool = False
    dry_run: bool = False
    capacity: int = Field(default=500, gt=0, le=10_000)
    min_interval_ms: int = Field(default=1200, ge=0)
    rate_limit_pause_ms: int = Field(default=60_000, gt=0)
    min_notional_usd: float = Field(default=0.0, ge=0)
    eviction_log_level: LogLevelName = "WARNING"
    timeout_s: float = Field(default=10.0, gt=0)

    model_config = {"extra": "forbid"}


class TelegramSettings(ChannelSettings):
    bot_token: SecretStr | None = None
    chat_id: str | None = None
    api_base_url: str = "https://api.telegram.org"
    disable_web_page_preview: bool = True


class XCredentials(BaseModel):
    api_key: SecretStr
    api_secret: SecretStr
    access_token: SecretStr
    access_secret: SecretStr

    model_config = {"extra": "forbid"}


class XSettings(ChannelSettings):
    min_interval_ms: int = Field(default=2000, ge=0)
    credentials: XCredentials | None = None
    api_base_url: str = "https://api.twitter.com"


DEFAULT_EXCHANGES = ("binance", "bybit", "okx", "gate")


def _default_exchanges() -> dict[str, ExchangeSettings]:
    return {name: ExchangeSettings() for name in DEFAULT_EXCHANGES}


class Settings(BaseModel):
    env: str = "dev"
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    exchanges: dict[str, ExchangeSettings] = Field(default_factory=_default_exchanges)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    x: XSettings = Field(default_factory=XSettings)

    model_config = {"extra": "forbid"}

    def min_notional_for(self, exchange: str) -> float:
        exch = self.exchanges.get(exchange)
        if exch is not None and exch.min_notional_usd is not None:
            return exch.min_notional_usd
        return self.pipeline.min_notional_usd

    def redacted(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        telegram = data.get("telegram")
        if isinstance(telegram, dict) and telegram.get("bot_token") is not None:
            telegram["bot_token"] = "***"
        x = data.get("x")
        if isinstance(x, dict) and isinstance(x.get("credentials"), dict):
            for key in x["credentials"]:
                x["credentials"][key] = "***"
        proxy = data.get("proxy")
        if isinstance(proxy, dict) and proxy.get("password") is not None:
            proxy["password"] = "***"
        return data

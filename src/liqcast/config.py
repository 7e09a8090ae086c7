from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .settings import DEFAULT_EXCHANGES, Settings

# Plain variable names understood for compatibility with existing deployments
_ALIAS_ENV: dict[str, list[str]] = {
    "MIN_NOTIONAL_USD": ["pipeline", "min_notional_usd"],
    "ENABLE_TELEGRAM": ["telegram", "enabled"],
    "BOT_TOKEN": ["telegram", "bot_token"],
    "CHAT_ID": ["telegram", "chat_id"],
    "ENABLE_X": ["x", "enabled"],
    "X_MIN_INTERVAL_MS": ["x", "min_interval_ms"],
    "X_MAX_QUEUE": ["x", "capacity"],
    "X_DRY_RUN": ["x", "dry_run"],
    "X_API_KEY": ["x", "credentials", "api_key"],
    "X_API_SECRET": ["x", "credentials", "api_secret"],
    "X_ACCESS_TOKEN": ["x", "credentials", "access_token"],
    "X_ACCESS_SECRET": ["x", "credentials", "access_secret"],
    "BYBIT_SYMBOLS": ["exchanges", "bybit", "options", "symbols"],
    "HL_USER": ["exchanges", "hyperliquid", "options", "user"],
}

# Values that must stay strings even when they look like YAML scalars
_STRING_PATHS = {
    ("telegram", "chat_id"),
    ("telegram", "bot_token"),
}


def _deep_set(obj: dict[str, Any], path: list[str], value: Any) -> None:
    cur: dict[str, Any] = obj
    for key in path[:-1]:
        nxt = cur.get(key)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[key] = nxt
        cur = nxt
    cur[path[-1]] = value


def _parse_env_value(raw: str, path: list[str]) -> Any:
    # wallet addresses like 0xabc would otherwise load as hex integers
    if tuple(path) in _STRING_PATHS or path[-1] == "user" or path[-1].startswith(("api_", "access_")):
        return raw
    if path[-1] == "symbols" and "," in raw:
        return [s.strip().upper() for s in raw.split(",") if s.strip()]
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def _seed_default_exchanges(merged: dict[str, Any], path: list[str]) -> None:
    # keep the default exchange set when only one exchange is overridden
    if path[0] == "exchanges" and not isinstance(merged.get("exchanges"), dict):
        merged["exchanges"] = {name: {} for name in DEFAULT_EXCHANGES}


def _apply_env_overrides(
    data: dict[str, Any],
    *,
    prefix: str = "LIQCAST_",
    environ: dict[str, str] | None = None,
) -> dict[str, Any]:
    merged: dict[str, Any] = dict(data)
    env = os.environ if environ is None else environ

    for key, path in _ALIAS_ENV.items():
        raw_value = env.get(key)
        if raw_value is None or raw_value == "":
            continue
        _seed_default_exchanges(merged, path)
        value = _parse_env_value(raw_value, path)
        if key.startswith("ENABLE_"):
            value = str(raw_value).strip() in {"1", "true", "True", "yes"}
        _deep_set(merged, list(path), value)

    for key, raw_value in env.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        if remainder in {"CONFIG", "LOG_LEVEL", "LOG_DIR"}:
            continue

        path = [p.lower() for p in remainder.split("__") if p]
        if not path:
            continue
        _seed_default_exchanges(merged, path)

        _deep_set(merged, path, _parse_env_value(raw_value, path))

    return merged


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from YAML, then apply environment overrides.

    ``LIQCAST_PIPELINE__MIN_NOTIONAL_USD=5000`` sets ``pipeline.min_notional_usd``;
    prefixed variables win over the plain aliases in ``_ALIAS_ENV``.
    """
    if config_path is None:
        config_path = os.environ.get("LIQCAST_CONFIG", "config.yml")

    path = Path(config_path)
    if path.exists():
        raw = path.read_text(encoding="utf-8")
        loaded = yaml.safe_load(raw)
        if loaded is None:
            data: dict[str, Any] = {}
        elif isinstance(loaded, dict):
            data = loaded
        else:
            raise ValueError(f"Config root must be a mapping, got: {type(loaded)!r}")
    else:
        data = {}

    data = _apply_env_overrides(data)

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

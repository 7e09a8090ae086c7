from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

_NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.websocket", "asyncio")


def configure_logging(log_dir: Path | None = None, level_name: str | None = None) -> None:
    """Configure console logging plus an optional rotating file under ``log_dir``.

    The level comes from ``level_name`` or ``LIQCAST_LOG_LEVEL`` (default INFO);
    ``LIQCAST_LOG_DIR`` overrides ``log_dir``.
    """
    level_name = (level_name or os.environ.get("LIQCAST_LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    env_log_dir = os.environ.get("LIQCAST_LOG_DIR")
    if env_log_dir:
        log_dir = Path(env_log_dir)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "liqcast.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

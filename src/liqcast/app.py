from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import load_settings
from .di import build_container
from .logging import configure_logging
from .runtime import run

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main entry point supporting both CLI commands and background bot mode.

    - `liqcast` or `liqcast bot`: run the liquidation relay
    - `liqcast <typer-subcommand>`: run CLI mode (e.g. `liqcast exchanges-list`)
    """
    if argv is None:
        argv = sys.argv[1:]

    if not argv:
        return _run_bot_mode([])

    if argv[0] == "bot":
        return _run_bot_mode(argv[1:])

    return _run_cli_mode(argv)


def _run_bot_mode(argv: list[str]) -> int:
    """Run the relay in the foreground until SIGINT/SIGTERM."""
    parser = argparse.ArgumentParser(
        prog="liqcast bot", description="Relay exchange liquidations to Telegram and X"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file (default: LIQCAST_CONFIG or ./config.yml)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log outbound messages instead of sending them",
    )

    args = parser.parse_args(argv)
    configure_logging(Path("logs"))

    try:
        settings = load_settings(args.config)
    except ValueError as e:
        logger.error("%s", e)
        return 2

    container = build_container(settings, dry_run=args.dry_run)

    logger.info("liqcast bot booting")
    try:
        asyncio.run(run(container))
    except KeyboardInterrupt:
        logger.info("interrupted")
    logger.info("liqcast bot exit")

    return 0


def _run_cli_mode(argv: list[str]) -> int:
    """Run in CLI mode using Typer."""
    try:
        configure_logging(Path("logs"))

        # Import CLI app here to avoid circular import
        from .cli import run_cli
        run_cli(argv)
        return 0
    except SystemExit as e:
        return e.code if e.code else 0
    except Exception as e:
        logger.error("CLI error: %s", e, exc_info=True)
        return 1

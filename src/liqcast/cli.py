"""Typer-based CLI for running and inspecting the liquidation relay."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .errors import ChannelRateLimited, ChannelSendError, ConfigurationError


# Import with local function to avoid circular imports
def _load_settings(config_path: Optional[Path] = None):
    from .config import load_settings
    return load_settings(config_path)

def _build_container(settings, dry_run: bool = False):
    from .di import build_container
    return build_container(settings, dry_run=dry_run)

def _configure_logging(log_dir: Path | None = None):
    from .logging import configure_logging
    return configure_logging(log_dir)

app = typer.Typer(help="Exchange liquidation relay CLI")
console = Console()
logger = logging.getLogger(__name__)


def run_cli(argv: list[str] | None = None) -> None:
    """Run CLI with optional argv parameter."""
    app(argv)


@app.command()
def run(
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log outbound messages instead of sending"),
) -> None:
    """Run the relay until interrupted."""
    from .runtime import run as run_runtime

    try:
        settings = _load_settings(config)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    container = _build_container(settings, dry_run=dry_run)
    console.print(
        f"Starting [cyan]{len(container.adapters)}[/cyan] adapters, "
        f"channels: [green]{', '.join(container.dispatchers) or 'none'}[/green]"
        + (" [yellow](dry run)[/yellow]" if dry_run else "")
    )
    try:
        asyncio.run(run_runtime(container))
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")


@app.command()
def exchanges_list(
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """List supported exchanges and whether they are enabled."""
    from .exchanges.factory import FEEDS

    try:
        settings = _load_settings(config)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    table = Table(title="Exchanges")
    table.add_column("Exchange", style="cyan", no_wrap=True)
    table.add_column("Enabled")
    table.add_column("Min notional", justify="right")
    table.add_column("Endpoint", style="dim")

    for name, feed_class in FEEDS.items():
        exch = settings.exchanges.get(name)
        enabled = exch is not None and exch.enabled
        url = (exch.url if exch is not None and exch.url else None) or feed_class.default_url
        table.add_row(
            name,
            "[green]yes[/green]" if enabled else "[dim]no[/dim]",
            f"${settings.min_notional_for(name):,.0f}",
            url,
        )

    console.print(table)


@app.command()
def config_show(
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Print the effective configuration with secrets masked."""
    try:
        settings = _load_settings(config)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    console.print_json(json.dumps(settings.redacted(), indent=2))


@app.command()
def render_line(
    exchange: str = typer.Option(..., help="Exchange name, e.g. binance"),
    symbol: str = typer.Option(..., help="Base asset, e.g. BTC"),
    side: str = typer.Option(..., help="Liquidated side: Long or Short"),
    notional: float = typer.Option(..., help="Notional value in USD"),
    price: float = typer.Option(..., help="Liquidation price"),
) -> None:
    """Render a liquidation line exactly as it would be sent."""
    from .formatting import build_liquidation_line

    side_title = side.strip().title()
    if side_title not in ("Long", "Short"):
        console.print(f"[red]Error:[/red] Invalid side '{side}'. Must be 'Long' or 'Short'.")
        raise typer.Exit(1)

    console.print(
        build_liquidation_line(
            exchange=exchange.lower(),
            symbol=symbol.upper(),
            side=side_title,
            notional=notional,
            price=price,
        ),
        markup=False,
    )


@app.command()
def send_test(
    channel: str = typer.Option(..., help="Outbound channel: telegram or x"),
    text: str = typer.Option("liqcast test message", help="Text to send"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log instead of sending"),
) -> None:
    """Send one message through an outbound channel."""
    from .notifiers import create_notifier

    try:
        settings = _load_settings(config)
        notifier = create_notifier(settings, channel.lower(), dry_run=dry_run)
    except (ValueError, ConfigurationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    try:
        asyncio.run(_send_once(notifier, text))
    except ChannelRateLimited as e:
        wait = f"{e.retry_after_ms} ms" if e.retry_after_ms else "unknown"
        console.print(f"[yellow]Rate limited[/yellow] by {channel} (retry after: {wait})")
        raise typer.Exit(1)
    except ChannelSendError as e:
        console.print(f"[red]✗ Send failed:[/red] {e.reason}")
        raise typer.Exit(1)

    console.print(Panel.fit(text, title=f"[green]✓ Sent via {channel}[/green]"))


async def _send_once(notifier, text: str) -> None:
    try:
        await notifier.send(text)
    finally:
        await notifier.close()


def main():
    app()


if __name__ == "__main__":
    main()

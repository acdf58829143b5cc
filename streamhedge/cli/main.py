"""
streamhedge CLI entry point.

Usage:
    # Poll once and print what was found
    streamhedge --once

    # Run the engine (dry run unless --live)
    streamhedge --run

    # Show configuration and recent trades
    streamhedge --status
"""

import signal
import sys
import time
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from streamhedge.arb.engine import StreamSwapEngine
from streamhedge.arb.poller import PollResult
from streamhedge.core.config import TradeConfigService, get_settings
from streamhedge.core.errors import ConfigurationError
from streamhedge.core.logging import get_logger, setup_logging
from streamhedge.core.timeutil import format_local
from streamhedge.services.persistence import create_persistence_service
from streamhedge.services.telegram import create_telegram_service
from streamhedge.services.telegram_commands import create_telegram_command_service

console = Console()
logger = get_logger("cli")


def build_engine(
    live: bool = False,
    min_size: Optional[float] = None,
    min_duration: Optional[float] = None,
) -> StreamSwapEngine:
    """Create an engine with CLI overrides applied to the trading thresholds."""
    trade_config = TradeConfigService.from_yaml()
    changes = {"dry_run": not live}
    if min_size is not None:
        changes["min_opportunity_size_usd"] = min_size
    if min_duration is not None:
        changes["min_opportunity_duration_s"] = min_duration
    trade_config.update(**changes)

    return StreamSwapEngine(
        trade_config=trade_config,
        persistence=create_persistence_service(),
        notifier=create_telegram_service(),
        commands=create_telegram_command_service(trade_config),
    )


def display_poll(result: PollResult) -> None:
    console.print(
        f"Fetched [bold]{result.fetched}[/bold] actions, {result.new_actions} new, "
        f"height {result.last_height or 'N/A'}"
    )
    if not result.opportunities:
        console.print("[dim]No tradeable stream swaps[/dim]")
        return

    table = Table(title="Opportunities")
    table.add_column("Detected")
    table.add_column("Tx", style="cyan")
    table.add_column("Direction")
    table.add_column("Pair")
    table.add_column("Size (USD)", justify="right")
    table.add_column("Duration", justify="right")

    for opp in result.opportunities:
        color = "green" if opp.direction.value == "long" else "red"
        table.add_row(
            format_local(opp.detected_at),
            opp.tx_id[:16] + "...",
            f"[{color}]{opp.direction.value}[/{color}]",
            f"{opp.input_asset} -> {opp.output_asset}",
            f"{opp.size_usd:,.2f}",
            f"{opp.estimated_duration_seconds:.0f}s",
        )
    console.print(table)


def show_status() -> None:
    """Show configuration and recent trades."""
    settings = get_settings()
    trade_config = TradeConfigService.from_yaml().current

    console.print("\n[bold]streamhedge status[/bold]\n")

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Environment", settings.streamhedge_env)
    table.add_row("Tracked asset", settings.tracked_asset)
    table.add_row("Venue pair", settings.kraken_pair)
    table.add_row("Poll interval", f"{settings.poll_interval_seconds}s")
    table.add_row("Min size", f"${trade_config.min_opportunity_size_usd:,.0f}")
    table.add_row("Min duration", f"{trade_config.min_opportunity_duration_s:.0f}s")
    table.add_row("Trade size", f"${trade_config.trade_size_usd:,.2f}")
    table.add_row("Max slippage", f"{trade_config.max_slippage_pct:.2f}%")
    table.add_row("Exit buffer", f"{trade_config.exit_buffer_seconds:.0f}s")
    table.add_row("Database", settings.database_url)
    table.add_row(
        "Kraken keys",
        "[green]Configured[/green]" if settings.has_kraken_credentials else "[red]Missing[/red]",
    )
    table.add_row(
        "Telegram",
        "[green]Enabled[/green]" if settings.telegram_enabled else "[dim]Disabled[/dim]",
    )

    console.print(table)
    console.print()

    recent = create_persistence_service().list_trades(limit=10)
    if recent:
        table = Table(title="Recent Trades")
        table.add_column("Trade", style="cyan")
        table.add_column("Direction")
        table.add_column("State")
        table.add_column("Entry", justify="right")
        table.add_column("Exit", justify="right")
        table.add_column("PnL", justify="right")

        for trade in recent:
            pnl = trade["pnl"]
            table.add_row(
                trade["trade_id"][:16] + "...",
                trade["direction"],
                trade["state"],
                f"{trade['entry_price']:.6f}" if trade["entry_price"] else "-",
                f"{trade['exit_price']:.6f}" if trade["exit_price"] else "-",
                f"{pnl:+.6f}" if pnl is not None else "-",
            )
        console.print(table)


def run_engine(engine: StreamSwapEngine) -> None:
    """Run until SIGINT/SIGTERM."""
    mode = "[red]LIVE[/red]" if not engine.trade_config.current.dry_run else "[yellow]DRY RUN[/yellow]"
    console.print(f"[bold]Starting streamhedge[/bold] {mode}")
    console.print("Press Ctrl+C to stop\n")

    def shutdown(signum, frame):
        console.print("\n[yellow]Shutting down...[/yellow]")
        engine.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    engine.start()
    while engine.running:
        time.sleep(1)


@click.command()
@click.option("--once", is_flag=True, help="Poll once and exit")
@click.option("--run", "run_", is_flag=True, help="Run the polling engine")
@click.option("--status", is_flag=True, help="Show configuration and recent trades")
@click.option("--live", is_flag=True, help="Send real orders (default is dry run)")
@click.option("--min-size", type=float, default=None, help="Minimum opportunity size in USD")
@click.option("--min-duration", type=float, default=None, help="Minimum stream duration in seconds")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def main(
    once: bool,
    run_: bool,
    status: bool,
    live: bool,
    min_size: Optional[float],
    min_duration: Optional[float],
    verbose: bool,
) -> None:
    """streamhedge - trade THORChain streaming swaps on Kraken"""

    setup_logging(log_level="DEBUG" if verbose else None)

    if status:
        show_status()
        return

    if not (once or run_):
        ctx = click.get_current_context()
        click.echo(ctx.get_help())
        return

    if once and live:
        # the exit job needs a running scheduler, which --once never starts
        raise click.UsageError("--live cannot be combined with --once; use --run for live trading")

    try:
        engine = build_engine(live=live, min_size=min_size, min_duration=min_duration)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(2)

    if once:
        display_poll(engine.poll_once())
        engine.lifecycle.shutdown()
        return

    run_engine(engine)


if __name__ == "__main__":
    main()

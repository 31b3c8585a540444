"""Operator CLI.

Exit codes: 0 success, 1 fatal error, 2 pool not ready yet.
"""

import asyncio
import time
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from config import Settings, load_settings
from db.enums import PoolType
from poolpayout.logs import setup_logging
from poolpayout.services.errors import ConfigurationError, PoolPayoutError
from poolpayout.services.pools import PoolKey, parse_pool_key
from poolpayout.services.scheduler import process_all_pool_types, process_scheduled_pools
from poolpayout.services.schemas.results import BatchResult, ProcessingResult
from poolpayout.services.wiring import POOL_TYPE_ORDER, build_batch_processors, open_processors

EXIT_OK: int = 0
EXIT_FATAL: int = 1
EXIT_TOO_EARLY: int = 2

AUTO_KEYWORDS: tuple[str, ...] = ("auto", "latest", "current")

app = typer.Typer(
    name="poolpayout",
    help="Reward pool payout processor",
    add_completion=False,
)

console = Console()


def _bootstrap() -> Settings:
    """Load and validate configuration before touching any pool."""
    try:
        settings: Settings = load_settings()
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=EXIT_FATAL) from exc
    setup_logging(settings.logging.level, settings.logging.format)
    return settings


def _resolve_pool_key(day: str | None, period: int | None, latest: PoolKey | None) -> PoolKey:
    if day is None or day.lower() in AUTO_KEYWORDS:
        if latest is None:
            console.print("[yellow]No pools with records found, using current pool[/yellow]")
            return PoolKey.from_timestamp(int(time.time()))
        return latest
    if period is None and ":" in day:
        try:
            return parse_pool_key(day)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
    if period is None:
        raise typer.BadParameter("PERIOD is required when DAY is given (0 = AM, 1 = PM)")
    try:
        return PoolKey(day=int(day), period=period)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid pool '{day} {period}': {exc}") from exc


def _print_result(result: ProcessingResult) -> None:
    table = Table(title=f"Pool {result.pool_key}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Outcome", result.outcome.value)
    if result.message:
        table.add_row("Message", result.message)
    summary = result.pool_summary
    if summary is not None:
        table.add_row("Merkle Root", summary.merkle_root)
        table.add_row("Transaction", summary.transaction_hash or "-")
        table.add_row("Users", str(summary.total_users))
        table.add_row("Winners", str(summary.winners))
        table.add_row("Total Slashed", str(summary.total_slashed_amount))
        table.add_row("New Rewards", str(summary.new_rewards))
        table.add_row("Protocol Fees", str(summary.protocol_fees))
        table.add_row("Claims Written", str(summary.claims_written))
    console.print(table)


def _print_batch(result: BatchResult) -> None:
    table = Table(title=f"{result.pool_type.value.title()} Batch")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total", str(result.total))
    table.add_row("Succeeded", str(result.succeeded))
    table.add_row("Failed", str(result.failed))
    table.add_row("Skipped", str(result.skipped))
    console.print(table)
    for pool, reason in result.per_pool_reasons.items():
        console.print(f"  {pool}: {reason}")


@app.command()
def process(
    day: Optional[str] = typer.Argument(None, help="Pool day, DAY:PERIOD, or 'auto' for the latest pool"),
    period: Optional[int] = typer.Argument(None, help="0 = AM, 1 = PM"),
    pool_type: PoolType = typer.Option(PoolType.ALARM, "--pool-type", "-t", help="Pool type"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip the ready-time check"),
):
    """Process a single pool."""
    settings = _bootstrap()
    try:
        with open_processors(settings, [pool_type]) as processors:
            processor = processors[0]
            latest = None
            if day is None or day.lower() in AUTO_KEYWORDS:
                latest = processor.repository.find_latest_pool_key()
            key = _resolve_pool_key(day, period, latest)
            console.print(f"Processing {pool_type.value} pool {key}...")
            result = asyncio.run(processor.process_pool(key, force=force))
    except PoolPayoutError as exc:
        console.print(f"[red]Pool processing failed:[/red] {exc}")
        raise typer.Exit(code=EXIT_FATAL) from exc

    _print_result(result)
    if result.too_early:
        raise typer.Exit(code=EXIT_TOO_EARLY)


@app.command("process-all")
def process_all(
    pool_type: Optional[PoolType] = typer.Option(
        None, "--pool-type", "-t", help="Pool type (default: all)"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Skip the ready-time check"),
):
    """Process every unfinalized pool, oldest first."""
    settings = _bootstrap()
    pool_types = [pool_type] if pool_type else list(POOL_TYPE_ORDER)
    try:
        with open_processors(settings, pool_types) as processors:
            batches = build_batch_processors(settings, processors)
            result = asyncio.run(process_all_pool_types(batches, force=force))
    except PoolPayoutError as exc:
        console.print(f"[red]Batch processing failed:[/red] {exc}")
        raise typer.Exit(code=EXIT_FATAL) from exc

    for batch in result.batches:
        _print_batch(batch)
    if not result.success:
        raise typer.Exit(code=EXIT_FATAL)


@app.command("find-latest")
def find_latest(
    pool_type: PoolType = typer.Option(PoolType.ALARM, "--pool-type", "-t", help="Pool type"),
):
    """Show the most recent pool that has records."""
    settings = _bootstrap()
    try:
        with open_processors(settings, [pool_type]) as processors:
            latest = processors[0].repository.find_latest_pool_key()
    except PoolPayoutError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=EXIT_FATAL) from exc

    if latest is None:
        console.print(f"[yellow]No {pool_type.value} pools found[/yellow]")
        raise typer.Exit(code=EXIT_FATAL)
    console.print(f"\nLatest {pool_type.value.title()} Pool:")
    console.print(latest.describe())


@app.command()
def cron(
    force: bool = typer.Option(False, "--force", "-f", help="Skip the ready-time check"),
):
    """Process the scheduled pool for every pool type."""
    settings = _bootstrap()
    with open_processors(settings) as processors:
        result = asyncio.run(
            process_scheduled_pools(
                processors, force=force, inter_pool_delay=settings.inter_pool_delay
            )
        )

    for run in result.runs:
        if run.success:
            status = "[green]ok[/green]"
        elif run.result is not None:
            status = "[yellow]skipped[/yellow]"
        else:
            status = "[red]failed[/red]"
        detail = run.result.message if run.result is not None else run.error
        console.print(f"{run.pool_type.value}: {status} {detail or ''}")

    if result.success:
        return
    if any(run.result is None for run in result.runs):
        raise typer.Exit(code=EXIT_FATAL)
    if any(run.result.too_early for run in result.runs if run.result is not None):
        raise typer.Exit(code=EXIT_TOO_EARLY)


@app.command()
def current():
    """Show the pool covering the current time."""
    now = int(time.time())
    key = PoolKey.from_timestamp(now)
    console.print(key.describe())
    remaining = key.ready_time() - now
    console.print(f"Ready for processing in {remaining}s")


@app.command("init-db")
def init_db():
    """Create database tables."""
    from db.connection import init_database

    _bootstrap()
    with console.status("Initializing database..."):
        created = init_database()
    console.print(f"[green]Database initialized[/green] ({len(created)} table(s) created)")


if __name__ == "__main__":
    app()

"""
VenuePulse Worker CLI
=====================

Command-line interface for running worker jobs.

Usage:
    python -m worker.cli <command> [options]

Commands:
    ingest:demo                    Load demo venues, events and users
    migrate:legacy                 Convert legacy participant arrays to check-ins
    popularity:recompute           Rebuild popularity aggregates from the ledger
    popularity:show                Show the most popular items
    schedule:run                   Recompute popularity on a fixed interval
    db:check                       Check database connection

Examples:
    python -m worker.cli ingest:demo --force
    python -m worker.cli migrate:legacy --dry-run
    python -m worker.cli migrate:legacy --batch-size 50 --recompute
    python -m worker.cli popularity:recompute --as-of 2025-01-15T00:00:00
    python -m worker.cli schedule:run --interval 30
"""

import signal
import threading
from datetime import datetime, timezone
from typing import Optional

import click
from rich.console import Console

from worker.config import configure_logging

console = Console()


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse datetime string in ISO format (returned as naive UTC)."""
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise click.BadParameter(f"Invalid datetime format: {value}. Use ISO format (YYYY-MM-DDTHH:MM:SS)")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def install_stop_handlers(stop_event: threading.Event) -> None:
    """SIGINT/SIGTERM ask running jobs to stop between items."""
    def handler(signum, frame):
        console.print(f"\n[yellow]Received signal {signum}, stopping...[/yellow]")
        stop_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """VenuePulse Worker - Background job runner for check-ins and popularity."""
    configure_logging()


# =============================================================================
# INGEST COMMANDS
# =============================================================================

@cli.command("ingest:demo")
@click.option("--force", is_flag=True, help="Force reload even if data exists")
def cmd_ingest_demo(force: bool):
    """Load or refresh demo seed data (idempotent)."""
    from worker.jobs.ingest import run_demo_ingest

    console.print("\n[bold]VenuePulse Worker - Demo Ingestion[/bold]\n")
    run_demo_ingest(force=force)


# =============================================================================
# MIGRATION COMMANDS
# =============================================================================

@cli.command("migrate:legacy")
@click.option("--dry-run", is_flag=True, help="Report what would be migrated without writing")
@click.option("--batch-size", type=int, default=None, help="Items per chunk")
@click.option("--resume-after", type=str, default=None, help="Checkpoint item id from a previous run")
@click.option("--recompute", is_flag=True, help="Run a popularity recompute afterwards")
def cmd_migrate_legacy(dry_run: bool, batch_size: Optional[int], resume_after: Optional[str], recompute: bool):
    """
    Convert legacy attendee/visitor arrays into check-in records.

    Safe to re-run: pairs that already have a record are skipped.
    Migrated records only show up in popularity after a recompute.
    """
    from app.errors import InvalidArgument
    from worker.jobs.migrate import parse_checkpoint, run_legacy_migration
    from worker.jobs.recompute import run_popularity_recompute

    try:
        checkpoint = parse_checkpoint(resume_after)
    except InvalidArgument as e:
        raise click.BadParameter(e.message, param_hint="--resume-after")

    console.print("\n[bold]VenuePulse Worker - Legacy Migration[/bold]\n")
    stop_event = threading.Event()
    install_stop_handlers(stop_event)

    summary = run_legacy_migration(
        dry_run=dry_run,
        batch_size=batch_size,
        resume_after=checkpoint,
        cancel_event=stop_event,
    )

    if recompute and not dry_run and not summary["cancelled"]:
        console.print("\n[bold]Recomputing popularity...[/bold]\n")
        run_popularity_recompute(cancel_event=stop_event)


# =============================================================================
# POPULARITY COMMANDS
# =============================================================================

@cli.command("popularity:recompute")
@click.option("--as-of", type=str, default=None, help="Reference timestamp for the windows (ISO format)")
def cmd_popularity_recompute(as_of: Optional[str]):
    """Rebuild every popularity aggregate from the check-in ledger."""
    from worker.jobs.recompute import run_popularity_recompute

    console.print("\n[bold]VenuePulse Worker - Popularity Recompute[/bold]\n")
    stop_event = threading.Event()
    install_stop_handlers(stop_event)
    run_popularity_recompute(as_of=parse_datetime(as_of), cancel_event=stop_event)


@cli.command("popularity:show")
@click.option("--limit", type=int, default=20, help="Number of items to show")
def cmd_popularity_show(limit: int):
    """Show the highest-scoring items."""
    from rich.table import Table
    from worker.jobs.recompute import top_aggregates

    console.print("\n[bold]VenuePulse Worker - Popularity[/bold]\n")

    rows = top_aggregates(limit=limit)
    if not rows:
        console.print("[yellow]No popularity aggregates found.[/yellow]")
        return

    table = Table(title="Most Popular Items")
    table.add_column("#", justify="right", width=3)
    table.add_column("Item", style="cyan")
    table.add_column("Kind")
    table.add_column("City")
    table.add_column("24h", justify="right")
    table.add_column("7d", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Recomputed")

    for i, (name, kind, city, agg) in enumerate(rows, 1):
        kind_style = "magenta" if kind.value == "event" else "blue"
        table.add_row(
            str(i),
            name,
            f"[{kind_style}]{kind.value}[/]",
            city or "",
            str(agg.recent_count),
            str(agg.weekly_count),
            str(agg.total_count),
            f"{agg.score:.1f}",
            agg.recomputed_at.strftime("%Y-%m-%d %H:%M") if agg.recomputed_at else "-",
        )

    console.print(table)


@cli.command("schedule:run")
@click.option("--interval", type=float, default=None, help="Minutes between recompute passes")
def cmd_schedule_run(interval: Optional[float]):
    """Recompute popularity on a fixed interval until interrupted."""
    from worker.scheduler import run_scheduler

    console.print("\n[bold]VenuePulse Worker - Recompute Scheduler[/bold]")
    console.print(f"Started at: {datetime.utcnow().isoformat()}\n")

    stop_event = threading.Event()
    install_stop_handlers(stop_event)
    scheduler = run_scheduler(interval_minutes=interval, stop_event=stop_event)

    console.print(
        f"\n[bold green]Scheduler stopped.[/bold green] "
        f"Runs: {scheduler.runs}, skipped: {scheduler.skipped}, failed: {scheduler.failed}"
    )


# =============================================================================
# UTILITY COMMANDS
# =============================================================================

@cli.command("db:check")
def cmd_db_check():
    """Check database connection."""
    from worker.database import check_database_connection

    console.print("\n[bold]Checking database connection...[/bold]")

    if check_database_connection():
        console.print("[green]✅ Database connection successful![/green]")
    else:
        console.print("[red]❌ Database connection failed![/red]")


if __name__ == "__main__":
    cli()

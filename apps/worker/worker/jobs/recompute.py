"""
Popularity Recompute Job
========================

Rebuilds every PopularityAggregate from the check-in ledger.

The incremental path only ever adds and subtracts; nothing ages a check-in out
of the 24h and 7d windows except this job. Each pass overwrites the stored
counters unconditionally, so whatever drift the deltas accumulated is gone
after it.

Run with: python -m worker.cli popularity:recompute
"""

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Set
from uuid import UUID

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import CheckIn, Item, PopularityAggregate
from app.popularity import ZERO_COUNTS, AggregateCounts, overwrite_statement
from worker.config import settings
from worker.database import dialect_name, get_sync_session

console = Console()
logger = logging.getLogger(__name__)


def target_item_ids(session: Session) -> Set[UUID]:
    """Items with ledger records, plus items whose stored aggregate is non-zero."""
    with_records = session.execute(select(CheckIn.item_id).distinct()).scalars().all()
    with_counts = session.execute(
        select(PopularityAggregate.item_id).where(
            or_(
                PopularityAggregate.recent_count != 0,
                PopularityAggregate.weekly_count != 0,
                PopularityAggregate.total_count != 0,
                PopularityAggregate.score != 0,
            )
        )
    ).scalars().all()
    return set(with_records) | set(with_counts)


def count_from_ledger(session: Session, as_of: datetime) -> Dict[UUID, AggregateCounts]:
    """
    Window counts per item as of ``as_of``.

    Active and checked-out records count alike. Records stamped after
    ``as_of`` are not visible to the pass.
    """
    recent_start = as_of - timedelta(hours=settings.recent_window_hours)
    weekly_start = as_of - timedelta(days=settings.weekly_window_days)

    rows = session.execute(
        select(
            CheckIn.item_id,
            func.sum(case((CheckIn.checked_in_at >= recent_start, 1), else_=0)),
            func.sum(case((CheckIn.checked_in_at >= weekly_start, 1), else_=0)),
            func.count(CheckIn.id),
        )
        .where(CheckIn.checked_in_at <= as_of)
        .group_by(CheckIn.item_id)
    ).all()

    return {
        item_id: AggregateCounts(recent=int(recent or 0), weekly=int(weekly or 0), total=int(total))
        for item_id, recent, weekly, total in rows
    }


def write_counts(session: Session, item_id: UUID, counts: AggregateCounts, as_of: datetime) -> None:
    session.execute(overwrite_statement(dialect_name(session), item_id, counts, as_of))
    session.commit()


def run_popularity_recompute(
    as_of: Optional[datetime] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, Any]:
    """
    Recompute popularity counters for every item that has or had activity.

    Args:
        as_of: Reference instant for the windows (defaults to now)
        cancel_event: Checked between items; a set event stops the pass

    Returns:
        dict with recompute stats
    """
    if as_of is None:
        as_of = datetime.utcnow()
    started = time.perf_counter()

    console.print("[bold blue]📈 Recomputing popularity...[/bold blue]")
    console.print(f"  • As of: {as_of.isoformat()}")

    stats = {
        "items": 0,
        "updated": 0,
        "zeroed": 0,
        "errors": 0,
        "cancelled": False,
        "as_of": as_of.isoformat(),
    }

    with get_sync_session() as session:
        item_ids = sorted(target_item_ids(session), key=str)
        counts_by_item = count_from_ledger(session, as_of)
        stats["items"] = len(item_ids)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            console=console,
        ) as progress:
            task = progress.add_task("Overwriting aggregates...", total=len(item_ids))

            for item_id in item_ids:
                if cancel_event is not None and cancel_event.is_set():
                    stats["cancelled"] = True
                    logger.warning(f"Recompute cancelled after {stats['updated']} items")
                    break

                counts = counts_by_item.get(item_id, ZERO_COUNTS)
                try:
                    write_counts(session, item_id, counts, as_of)
                    stats["updated"] += 1
                    if counts.is_zero:
                        stats["zeroed"] += 1
                except SQLAlchemyError:
                    session.rollback()
                    logger.exception(f"Recompute failed for item {item_id}")
                    stats["errors"] += 1

                progress.update(task, advance=1)

    stats["duration_ms"] = int((time.perf_counter() - started) * 1000)

    console.print("\n[bold green]✅ Popularity recompute complete![/bold green]")
    console.print(f"  • Items: {stats['items']}")
    console.print(f"  • Updated: {stats['updated']} ({stats['zeroed']} zeroed)")
    console.print(f"  • Errors: {stats['errors']}")

    return stats


def top_aggregates(limit: int = 20):
    """Items with the highest score, for display."""
    with get_sync_session() as session:
        return session.execute(
            select(Item.name, Item.kind, Item.city, PopularityAggregate)
            .join(PopularityAggregate, PopularityAggregate.item_id == Item.id)
            .order_by(PopularityAggregate.score.desc(), Item.name.asc())
            .limit(limit)
        ).all()

"""
Popularity Aggregate Protocol
=============================

The single code path through which a PopularityAggregate is written.

Two kinds of command exist:

- ``AggregateDelta``: applied by the incremental path on every check-in and
  check-out as one atomic ``INSERT ... ON CONFLICT DO UPDATE SET col = col + n``
  statement. No read-modify-write happens in application code, so concurrent
  deltas on the same item cannot lose updates.
- ``AggregateCounts``: a full overwrite written by the recompute job from the
  ledger. It always wins over deltas that raced with it.

Incremental aggregates are readable immediately and get re-corrected once
per recompute interval. Deltas never expire window contributions; only the
recompute does.

The check-in/check-out score deltas (+5 / -2) do not match the recompute
weights; the next recompute pass settles the difference.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import case
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import dialect_insert
from app.models import PopularityAggregate

logger = logging.getLogger(__name__)


# =============================================================================
# SCORING
# =============================================================================

RECENT_WEIGHT = 5.0
WEEKLY_WEIGHT = 2.0
TOTAL_WEIGHT = 0.5


def compute_score(recent: int, weekly: int, total: int) -> float:
    """score = 5·recent + 2·weekly + 0.5·total"""
    return RECENT_WEIGHT * recent + WEEKLY_WEIGHT * weekly + TOTAL_WEIGHT * total


@dataclass(frozen=True)
class AggregateDelta:
    """Relative change applied atomically at the storage layer."""
    recent: int = 0
    weekly: int = 0
    total: int = 0
    score: float = 0.0

    def __post_init__(self):
        if self.total < 0:
            raise ValueError("totalCount is historical and can never decrease")


CHECK_IN_DELTA = AggregateDelta(recent=1, total=1, score=5.0)
CHECK_OUT_DELTA = AggregateDelta(recent=-1, score=-2.0)


@dataclass(frozen=True)
class AggregateCounts:
    """Authoritative counters recomputed from the ledger."""
    recent: int
    weekly: int
    total: int

    @property
    def score(self) -> float:
        return compute_score(self.recent, self.weekly, self.total)

    @property
    def is_zero(self) -> bool:
        return self.recent == 0 and self.weekly == 0 and self.total == 0


ZERO_COUNTS = AggregateCounts(recent=0, weekly=0, total=0)


# =============================================================================
# STATEMENTS
# =============================================================================

def _shifted(column, amount, zero):
    """column + amount, floored at zero for negative amounts."""
    if amount >= 0:
        return column + amount
    return case((column + amount > 0, column + amount), else_=zero)


def delta_statement(dialect_name: str, item_id: UUID, delta: AggregateDelta, at: datetime):
    """Atomic upsert applying ``delta``; creates the aggregate lazily."""
    insert = dialect_insert(dialect_name)
    table = PopularityAggregate.__table__

    stmt = insert(table).values(
        item_id=item_id,
        recent_count=max(0, delta.recent),
        weekly_count=max(0, delta.weekly),
        total_count=delta.total,
        score=max(0.0, delta.score),
        updated_at=at,
    )
    return stmt.on_conflict_do_update(
        index_elements=[table.c.item_id],
        set_={
            "recent_count": _shifted(table.c.recent_count, delta.recent, 0),
            "weekly_count": _shifted(table.c.weekly_count, delta.weekly, 0),
            "total_count": table.c.total_count + delta.total,
            "score": _shifted(table.c.score, delta.score, 0.0),
            "updated_at": at,
        },
    )


def overwrite_statement(dialect_name: str, item_id: UUID, counts: AggregateCounts, at: datetime):
    """Unconditional upsert of recomputed counters."""
    insert = dialect_insert(dialect_name)
    table = PopularityAggregate.__table__

    stmt = insert(table).values(
        item_id=item_id,
        recent_count=counts.recent,
        weekly_count=counts.weekly,
        total_count=counts.total,
        score=counts.score,
        updated_at=at,
        recomputed_at=at,
    )
    return stmt.on_conflict_do_update(
        index_elements=[table.c.item_id],
        set_={
            "recent_count": stmt.excluded.recent_count,
            "weekly_count": stmt.excluded.weekly_count,
            "total_count": stmt.excluded.total_count,
            "score": stmt.excluded.score,
            "updated_at": stmt.excluded.updated_at,
            "recomputed_at": stmt.excluded.recomputed_at,
        },
    )


# =============================================================================
# INCREMENTAL AGGREGATOR
# =============================================================================

async def apply_delta(
    db: AsyncSession,
    item_id: UUID,
    delta: AggregateDelta,
    at: Optional[datetime] = None,
) -> None:
    """Apply one delta and commit it."""
    at = at or datetime.utcnow()
    dialect_name = db.get_bind().dialect.name
    await db.execute(delta_statement(dialect_name, item_id, delta, at))
    await db.commit()
    logger.debug(f"Applied {delta} to item {item_id}")


async def on_check_in(db: AsyncSession, item_id: UUID, at: Optional[datetime] = None) -> None:
    await apply_delta(db, item_id, CHECK_IN_DELTA, at)


async def on_check_out(db: AsyncSession, item_id: UUID, at: Optional[datetime] = None) -> None:
    await apply_delta(db, item_id, CHECK_OUT_DELTA, at)

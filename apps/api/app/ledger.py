"""
Check-in Ledger
===============

Append-only store of check-in records and the source of truth for all
attendance history.

Every successful mutation notifies the derived state:
- the user history index is appended in the same transaction as the record;
- the incremental popularity aggregator runs right after the commit. Its
  failures are logged and never fail the check-in: the recompute job rebuilds
  the aggregate from this ledger anyway.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import Conflict, InvalidArgument, NotFound
from app.history import record_history
from app.models import CheckIn, Item, Provenance, User
from app.popularity import on_check_in, on_check_out

logger = logging.getLogger(__name__)

_WINDOW_RE = re.compile(r"^(\d+)([mhd])$")
_WINDOW_UNITS = {"m": "minutes", "h": "hours", "d": "days"}


# =============================================================================
# HELPERS
# =============================================================================

def parse_window(window: str) -> timedelta:
    """Parse window strings like '30m', '24h', '7d'."""
    match = _WINDOW_RE.match(window.strip().lower())
    if not match or int(match.group(1)) == 0:
        raise InvalidArgument(f"Invalid window '{window}'. Use e.g. 30m, 24h or 7d")
    amount, unit = match.groups()
    return timedelta(**{_WINDOW_UNITS[unit]: int(amount)})


def to_naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _resolve_time(at: Optional[datetime], now: datetime) -> datetime:
    if at is None:
        return now
    at = to_naive_utc(at)
    if at > now + timedelta(seconds=settings.checkin_clock_skew_seconds):
        raise InvalidArgument(f"Timestamp {at.isoformat()} is in the future")
    # Within the skew a client clock running ahead is stored as now
    return min(at, now)


async def _notify_aggregator(
    handler: Callable[[AsyncSession, UUID], Awaitable[None]],
    db: AsyncSession,
    record: CheckIn,
) -> None:
    # Detached, the committed record keeps its state if the update rolls back
    db.expunge(record)
    try:
        await handler(db, record.item_id)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(
            f"Incremental popularity update failed for item {record.item_id}; "
            f"the next recompute pass will correct it"
        )


async def _active_record(db: AsyncSession, user_id: UUID, item_id: UUID) -> Optional[CheckIn]:
    result = await db.execute(
        select(CheckIn).where(
            CheckIn.user_id == user_id,
            CheckIn.item_id == item_id,
            CheckIn.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


# =============================================================================
# WRITES
# =============================================================================

async def record_check_in(
    db: AsyncSession,
    user_id: UUID,
    item_id: UUID,
    at: Optional[datetime] = None,
) -> CheckIn:
    """
    Append an active check-in for (user, item).

    Raises Conflict while an active record exists for the pair.
    """
    now = datetime.utcnow()
    at = _resolve_time(at, now)

    item = await db.get(Item, item_id)
    if item is None:
        raise NotFound(f"Item {item_id} not found")
    if await db.get(User, user_id) is None:
        raise NotFound(f"User {user_id} not found")

    if await _active_record(db, user_id, item_id) is not None:
        raise Conflict(f"User {user_id} is already checked in to item {item_id}")

    record = CheckIn(
        id=uuid4(),
        user_id=user_id,
        item_id=item_id,
        checked_in_at=at,
        checked_out_at=None,
        is_active=True,
        provenance=Provenance.LIVE,
        created_at=now,
    )
    db.add(record)
    await record_history(db, user_id, item_id, item.kind, at)

    try:
        await db.commit()
    except IntegrityError:
        # A concurrent check-in for the same pair won the partial unique index
        await db.rollback()
        raise Conflict(f"User {user_id} is already checked in to item {item_id}")

    logger.info(f"Check-in {record.id}: user={user_id} item={item_id}")
    await _notify_aggregator(on_check_in, db, record)
    return record


async def record_check_out(
    db: AsyncSession,
    user_id: UUID,
    item_id: UUID,
    at: Optional[datetime] = None,
) -> CheckIn:
    """
    Close the single active record for (user, item).

    Raises NotFound when the pair has no active record.
    """
    at = _resolve_time(at, datetime.utcnow())

    record = await _active_record(db, user_id, item_id)
    if record is None:
        raise NotFound(f"User {user_id} has no active check-in at item {item_id}")
    if at < record.checked_in_at:
        raise InvalidArgument("Check-out time precedes the check-in time")

    result = await db.execute(
        update(CheckIn)
        .where(CheckIn.id == record.id, CheckIn.is_active.is_(True))
        .values(is_active=False, checked_out_at=at)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Lost the race against another check-out of the same record
        await db.rollback()
        raise NotFound(f"User {user_id} has no active check-in at item {item_id}")

    await db.commit()
    await db.refresh(record)

    logger.info(f"Check-out {record.id}: user={user_id} item={item_id}")
    await _notify_aggregator(on_check_out, db, record)
    return record


# =============================================================================
# READS
# =============================================================================

async def query_item(
    db: AsyncSession,
    item_id: UUID,
    window: Optional[str] = None,
    active_only: bool = False,
    as_of: Optional[datetime] = None,
) -> List[CheckIn]:
    """Records for an item, newest first, optionally limited to a trailing window."""
    stmt = select(CheckIn).where(CheckIn.item_id == item_id)
    if window:
        as_of = as_of or datetime.utcnow()
        stmt = stmt.where(
            CheckIn.checked_in_at >= as_of - parse_window(window),
            CheckIn.checked_in_at <= as_of,
        )
    if active_only:
        stmt = stmt.where(CheckIn.is_active.is_(True))

    result = await db.execute(stmt.order_by(CheckIn.checked_in_at.desc()))
    return list(result.scalars().all())


async def query_user(
    db: AsyncSession,
    user_id: UUID,
    active_only: bool = False,
) -> List[CheckIn]:
    """Records for a user, newest first."""
    stmt = select(CheckIn).where(CheckIn.user_id == user_id)
    if active_only:
        stmt = stmt.where(CheckIn.is_active.is_(True))

    result = await db.execute(stmt.order_by(CheckIn.checked_in_at.desc()))
    return list(result.scalars().all())

"""
User History Index
==================

Per-user set of distinct items ever checked into, split by item kind.

Entries are appended on every successful check-in creation (live or
migrated) and never removed: history is permanent evidence of past
attendance. "Currently checked in" is a different question, answered from
the ledger's active records instead.
"""

from datetime import datetime
from typing import List
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import dialect_insert
from app.errors import NotFound
from app.models import CheckIn, Item, ItemKind, User, UserHistoryEntry
from app.schemas import UserHistoryResponse, item_summary


def history_insert_statement(
    dialect_name: str,
    user_id: UUID,
    item_id: UUID,
    item_kind: ItemKind,
    at: datetime,
):
    """Set-semantics insert: a second entry for the same (user, item) is a no-op."""
    insert = dialect_insert(dialect_name)
    table = UserHistoryEntry.__table__
    stmt = insert(table).values(
        id=uuid4(),
        user_id=user_id,
        item_id=item_id,
        item_kind=item_kind,
        first_checked_in_at=at,
    )
    return stmt.on_conflict_do_nothing(index_elements=[table.c.user_id, table.c.item_id])


async def record_history(
    db: AsyncSession,
    user_id: UUID,
    item_id: UUID,
    item_kind: ItemKind,
    at: datetime,
) -> None:
    """Append to the user's history inside the caller's transaction."""
    dialect_name = db.get_bind().dialect.name
    await db.execute(history_insert_statement(dialect_name, user_id, item_id, item_kind, at))


async def get_user_history(db: AsyncSession, user_id: UUID) -> UserHistoryResponse:
    """History sets with resolved item summaries, plus current check-ins."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")

    rows = await db.execute(
        select(UserHistoryEntry, Item)
        .join(Item, Item.id == UserHistoryEntry.item_id)
        .where(UserHistoryEntry.user_id == user_id)
        .order_by(UserHistoryEntry.first_checked_in_at.desc())
    )

    venues = []
    events = []
    for entry, item in rows:
        summary = item_summary(item)
        if entry.item_kind == ItemKind.VENUE:
            venues.append(summary)
        else:
            events.append(summary)

    active = await db.execute(
        select(CheckIn.item_id)
        .where(CheckIn.user_id == user_id, CheckIn.is_active.is_(True))
    )
    active_item_ids: List[UUID] = list(active.scalars().all())

    return UserHistoryResponse(
        user_id=user_id,
        venue_ids=[v.id for v in venues],
        event_ids=[e.id for e in events],
        venues=venues,
        events=events,
        total_venues=len(venues),
        total_events=len(events),
        total=len(venues) + len(events),
        active_item_ids=active_item_ids,
    )

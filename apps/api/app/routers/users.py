"""
Users Router
============

Per-user history and ledger records.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db
from app.errors import NotFound
from app.history import get_user_history
from app.ledger import query_user
from app.models import User
from app.schemas import CheckInListResponse, CheckInRead, ErrorResponse, UserHistoryResponse

router = APIRouter(prefix="/users", tags=["Users"])


@router.get(
    "/{user_id}/history",
    response_model=UserHistoryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def user_history(
    user_id: UUID,
    db: AsyncSession = Depends(get_db)
) -> UserHistoryResponse:
    """
    Every distinct venue and event the user has ever checked into.

    Checking out does not remove an item from history. Items the user is
    currently checked into are listed in `active_item_ids`.
    """
    return await get_user_history(db, user_id)


@router.get(
    "/{user_id}/checkins",
    response_model=CheckInListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def user_checkins(
    user_id: UUID,
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db)
) -> CheckInListResponse:
    """Ledger records for a user, newest first."""
    if await db.get(User, user_id) is None:
        raise NotFound(f"User {user_id} not found")

    records = await query_user(db, user_id, active_only=active_only)
    return CheckInListResponse(
        records=[CheckInRead.model_validate(r) for r in records],
        total=len(records),
    )

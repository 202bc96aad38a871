"""
Check-ins Router
================

Live check-in and check-out against the ledger.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db
from app.ledger import record_check_in, record_check_out
from app.schemas import CheckInCreate, CheckInRead, CheckOutRequest, ErrorResponse

router = APIRouter(prefix="/checkins", tags=["Check-ins"])


@router.post(
    "",
    response_model=CheckInRead,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def check_in(
    payload: CheckInCreate,
    db: AsyncSession = Depends(get_db)
) -> CheckInRead:
    """
    Check a user into a venue or event.

    Fails with **409** while the user already has an active check-in for the
    same item, and with **404** for an unknown user or item.

    **Example request:**
    ```json
    {
        "user_id": "uuid",
        "item_id": "uuid"
    }
    ```
    """
    record = await record_check_in(db, payload.user_id, payload.item_id, payload.at)
    return CheckInRead.model_validate(record)


@router.post(
    "/checkout",
    response_model=CheckInRead,
    responses={404: {"model": ErrorResponse}},
)
async def check_out(
    payload: CheckOutRequest,
    db: AsyncSession = Depends(get_db)
) -> CheckInRead:
    """
    Close the user's active check-in for an item.

    Returns **404** when there is nothing to close. History is not touched.
    """
    record = await record_check_out(db, payload.user_id, payload.item_id, payload.at)
    return CheckInRead.model_validate(record)

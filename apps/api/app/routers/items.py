"""
Items Router
============

Discovery endpoints over venues and events:
- Trending by popularity window
- Nearby (proximity search)
- Item detail and its ledger records
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.dependencies import get_db
from app.errors import NotFound
from app.ledger import query_item
from app.models import Item, ItemKind
from app.schemas import (
    CheckInListResponse,
    CheckInRead,
    ErrorResponse,
    ItemSummary,
    NearbyResponse,
    TrendingResponse,
    TrendingTimeframe,
)
from app.services import find_nearby_items, get_item_detail, get_trending_items

router = APIRouter(prefix="/items", tags=["Items"])


# Static paths are declared before /{item_id}

@router.get("/trending", response_model=TrendingResponse)
async def trending(
    city: Optional[str] = Query(None, description="Case-insensitive city filter"),
    timeframe: TrendingTimeframe = Query(TrendingTimeframe.DAY),
    kind: Optional[ItemKind] = Query(None),
    limit: int = Query(settings.trending_default_limit, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db)
) -> TrendingResponse:
    """
    Items ranked by popularity.

    - `day` ranks by the last-24h counter
    - `week` ranks by the last-7d counter
    - `all` ranks by the all-time counter

    Ties break on score, then name. Items with no activity in the timeframe
    are not listed.
    """
    return await get_trending_items(db, city=city, limit=limit, timeframe=timeframe, kind=kind)


@router.get(
    "/nearby",
    response_model=NearbyResponse,
    responses={400: {"model": ErrorResponse}},
)
async def nearby(
    lat: Optional[float] = Query(None, description="Origin latitude"),
    lon: Optional[float] = Query(None, description="Origin longitude"),
    radius_meters: float = Query(5000.0),
    limit: int = Query(settings.proximity_default_limit, ge=1, le=settings.max_page_size),
    kind: Optional[ItemKind] = Query(None),
    db: AsyncSession = Depends(get_db)
) -> NearbyResponse:
    """
    Items within `radius_meters` of (`lat`, `lon`), nearest first.

    Popularity only breaks ties between equally distant items. Missing or
    out-of-range coordinates return **400**.
    """
    return await find_nearby_items(db, lat, lon, radius_meters, limit=limit, kind=kind)


@router.get(
    "/{item_id}",
    response_model=ItemSummary,
    responses={404: {"model": ErrorResponse}},
)
async def get_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    """Item detail with its current popularity counters."""
    return await get_item_detail(db, item_id)


@router.get(
    "/{item_id}/checkins",
    response_model=CheckInListResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_item_checkins(
    item_id: UUID,
    window: Optional[str] = Query(None, description="Trailing window, e.g. 30m, 24h, 7d"),
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db)
) -> CheckInListResponse:
    """Ledger records for an item, newest first."""
    if await db.get(Item, item_id) is None:
        raise NotFound(f"Item {item_id} not found")

    records = await query_item(db, item_id, window=window, active_only=active_only)
    return CheckInListResponse(
        records=[CheckInRead.model_validate(r) for r in records],
        total=len(records),
        window=window,
    )

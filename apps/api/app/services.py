"""
VenuePulse Discovery Services
=============================

Read-side business logic:
- Trending ranking by popularity window
- Proximity search (distance first, popularity as tie-break)
- Item detail

None of these write the popularity aggregate.
"""

import logging
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import InvalidArgument, NotFound
from app.geo import bounding_box, haversine_m, meters_to_miles, validate_coordinates
from app.models import Item, ItemKind, PopularityAggregate
from app.schemas import (
    EventSummary,
    NearbyResponse,
    NearbyResult,
    TrendingEntry,
    TrendingResponse,
    TrendingTimeframe,
    VenueSummary,
    item_summary,
)

logger = logging.getLogger(__name__)


# =============================================================================
# TRENDING SERVICE
# =============================================================================

TIMEFRAME_COLUMNS = {
    TrendingTimeframe.DAY: PopularityAggregate.recent_count,
    TrendingTimeframe.WEEK: PopularityAggregate.weekly_count,
    TrendingTimeframe.ALL: PopularityAggregate.total_count,
}


async def get_trending_items(
    db: AsyncSession,
    city: Optional[str] = None,
    limit: int = 20,
    timeframe: TrendingTimeframe = TrendingTimeframe.DAY,
    kind: Optional[ItemKind] = None,
) -> TrendingResponse:
    """
    Rank items by the counter matching ``timeframe``.

    Ties are broken by score, then name. Items with no activity in the
    timeframe are left out.
    """
    column = TIMEFRAME_COLUMNS[timeframe]

    stmt = (
        select(Item, PopularityAggregate)
        .join(PopularityAggregate, PopularityAggregate.item_id == Item.id)
        .where(column > 0)
    )
    if city and city.strip():
        stmt = stmt.where(func.lower(Item.city) == city.strip().lower())
    if kind is not None:
        stmt = stmt.where(Item.kind == kind)

    stmt = stmt.order_by(column.desc(), PopularityAggregate.score.desc(), Item.name.asc()).limit(limit)
    rows = (await db.execute(stmt)).all()

    results = [
        TrendingEntry(rank=rank, item=item_summary(item, aggregate))
        for rank, (item, aggregate) in enumerate(rows, 1)
    ]
    return TrendingResponse(timeframe=timeframe, city=city, results=results, total=len(results))


# =============================================================================
# PROXIMITY SERVICE
# =============================================================================

async def find_nearby_items(
    db: AsyncSession,
    latitude: Optional[float],
    longitude: Optional[float],
    radius_m: float,
    limit: int = 20,
    kind: Optional[ItemKind] = None,
) -> NearbyResponse:
    """
    Items within ``radius_m`` of the origin, nearest first.

    Candidates come from a bounding-box query capped at the configured pool
    size and are filtered in memory with the haversine distance. There is no
    spatial index behind this: very dense areas can exceed the pool, which is
    an accepted scaling limit.
    """
    validate_coordinates(latitude, longitude)
    if radius_m is None or radius_m <= 0:
        raise InvalidArgument("radius_meters must be positive")
    if radius_m > settings.proximity_max_radius_m:
        raise InvalidArgument(
            f"radius_meters may not exceed {settings.proximity_max_radius_m:.0f}"
        )

    box = bounding_box(latitude, longitude, radius_m)
    stmt = (
        select(Item, PopularityAggregate)
        .outerjoin(PopularityAggregate, PopularityAggregate.item_id == Item.id)
        .where(
            Item.latitude.is_not(None),
            Item.longitude.is_not(None),
            Item.latitude.between(box.min_lat, box.max_lat),
        )
    )
    if box.min_lon is not None:
        stmt = stmt.where(Item.longitude.between(box.min_lon, box.max_lon))
    if kind is not None:
        stmt = stmt.where(Item.kind == kind)

    # Cheap planar proxy so the capped pool keeps the closest candidates
    proxy = func.abs(Item.latitude - latitude) + func.abs(Item.longitude - longitude)
    stmt = stmt.order_by(proxy).limit(settings.proximity_candidate_pool)

    rows = (await db.execute(stmt)).all()

    matches = []
    for item, aggregate in rows:
        distance = haversine_m(latitude, longitude, item.latitude, item.longitude)
        if distance <= radius_m:
            score = aggregate.score if aggregate else 0.0
            matches.append((distance, score, item, aggregate))

    matches.sort(key=lambda m: (m[0], -m[1]))

    results = [
        NearbyResult(
            item=item_summary(item, aggregate),
            distance_meters=distance,
            distance_miles=meters_to_miles(distance),
        )
        for distance, _, item, aggregate in matches[:limit]
    ]

    if len(rows) >= settings.proximity_candidate_pool:
        logger.warning(
            f"Nearby search at ({latitude}, {longitude}) r={radius_m}m hit the "
            f"candidate pool cap of {settings.proximity_candidate_pool}"
        )

    return NearbyResponse(
        latitude=latitude,
        longitude=longitude,
        radius_meters=radius_m,
        results=results,
        total=len(results),
        candidates_scanned=len(rows),
    )


# =============================================================================
# ITEM SERVICE
# =============================================================================

async def get_item_detail(db: AsyncSession, item_id: UUID) -> Union[VenueSummary, EventSummary]:
    row = (
        await db.execute(
            select(Item, PopularityAggregate)
            .outerjoin(PopularityAggregate, PopularityAggregate.item_id == Item.id)
            .where(Item.id == item_id)
        )
    ).first()
    if row is None:
        raise NotFound(f"Item {item_id} not found")
    item, aggregate = row
    return item_summary(item, aggregate)

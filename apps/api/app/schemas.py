"""
VenuePulse API Schemas
======================

Pydantic schemas for request/response validation:
- Items (venue | event tagged union) and their popularity aggregate
- Ledger (check-in records)
- Discovery (trending, nearby)
- User history
- Admin job summaries
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models import Item, ItemKind, PopularityAggregate, Provenance


# =============================================================================
# BASE SCHEMAS
# =============================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseModel):
    """Structured error payload returned for every domain error."""
    error: str
    message: str


# =============================================================================
# HEALTH & STATUS
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: datetime
    database: str
    redis: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness probe response."""
    ready: bool
    checks: Dict[str, bool]


# =============================================================================
# ITEM SCHEMAS
# =============================================================================

class AggregateRead(BaseSchema):
    """Popularity counters for one item."""
    recent_count: int = 0
    weekly_count: int = 0
    total_count: int = 0
    score: float = 0.0
    updated_at: Optional[datetime] = None
    recomputed_at: Optional[datetime] = None


class _ItemSummaryBase(BaseModel):
    id: UUID
    name: str
    city: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    popularity: AggregateRead = Field(default_factory=AggregateRead)


class VenueSummary(_ItemSummaryBase):
    kind: Literal["venue"] = "venue"


class EventSummary(_ItemSummaryBase):
    kind: Literal["event"] = "event"
    starts_at: Optional[datetime] = None


ItemSummary = Annotated[Union[VenueSummary, EventSummary], Field(discriminator="kind")]


def item_summary(item: Item, aggregate: Optional[PopularityAggregate] = None) -> Union[VenueSummary, EventSummary]:
    """Build the tagged summary for an item row."""
    fields = dict(
        id=item.id,
        name=item.name,
        city=item.city,
        address=item.address,
        latitude=item.latitude,
        longitude=item.longitude,
        popularity=AggregateRead.model_validate(aggregate) if aggregate else AggregateRead(),
    )
    if item.kind == ItemKind.EVENT:
        return EventSummary(starts_at=item.starts_at, **fields)
    return VenueSummary(**fields)


# =============================================================================
# LEDGER SCHEMAS
# =============================================================================

class CheckInCreate(BaseModel):
    """Check a user into an item."""
    user_id: UUID
    item_id: UUID
    at: Optional[datetime] = Field(None, description="Defaults to now")


class CheckOutRequest(BaseModel):
    """Check a user out of an item."""
    user_id: UUID
    item_id: UUID
    at: Optional[datetime] = Field(None, description="Defaults to now")


class CheckInRead(BaseSchema):
    id: UUID
    user_id: UUID
    item_id: UUID
    checked_in_at: datetime
    checked_out_at: Optional[datetime] = None
    is_active: bool
    provenance: Provenance
    legacy_source_id: Optional[str] = None
    created_at: datetime


class CheckInListResponse(BaseModel):
    records: List[CheckInRead]
    total: int
    window: Optional[str] = None


# =============================================================================
# DISCOVERY SCHEMAS
# =============================================================================

class TrendingTimeframe(str, Enum):
    DAY = "day"
    WEEK = "week"
    ALL = "all"


class TrendingEntry(BaseModel):
    rank: int
    item: ItemSummary


class TrendingResponse(BaseModel):
    timeframe: TrendingTimeframe
    city: Optional[str] = None
    results: List[TrendingEntry]
    total: int


class NearbyResult(BaseModel):
    item: ItemSummary
    distance_meters: float
    distance_miles: float


class NearbyResponse(BaseModel):
    latitude: float
    longitude: float
    radius_meters: float
    results: List[NearbyResult]
    total: int
    candidates_scanned: int


# =============================================================================
# USER HISTORY SCHEMAS
# =============================================================================

class UserHistoryResponse(BaseModel):
    user_id: UUID
    venue_ids: List[UUID]
    event_ids: List[UUID]
    venues: List[VenueSummary]
    events: List[EventSummary]
    total_venues: int
    total_events: int
    total: int
    active_item_ids: List[UUID] = []


# =============================================================================
# ADMIN SCHEMAS
# =============================================================================

class MigrationSummary(BaseModel):
    """Legacy migration outcome; identical for dry and real runs on the same input."""
    items: int
    processed: int
    created: int
    skipped: int
    errored: int
    dry_run: bool
    cancelled: bool = False
    checkpoint: Optional[str] = None


class RecomputeSummary(BaseModel):
    items: int
    updated: int
    zeroed: int
    errors: int
    cancelled: bool = False
    as_of: datetime
    duration_ms: int

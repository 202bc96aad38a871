"""
Tests for Item Endpoints
========================

Tests for:
- GET /api/v1/items/trending
- GET /api/v1/items/nearby
- GET /api/v1/items/{item_id}
"""

from datetime import datetime
from uuid import uuid4

import pytest
from httpx import AsyncClient

from app.models import Item, ItemKind, PopularityAggregate
from app.popularity import compute_score

# Same origin as the seeded items
ORIGIN = (30.2672, -97.7431)


def names(results):
    return [r["item"]["name"] for r in results]


# =============================================================================
# TRENDING
# =============================================================================

@pytest.mark.asyncio
async def test_trending_day_by_city(client: AsyncClient, seeded_db):
    """Day ranking uses the 24h counter; ties break on score."""
    response = await client.get("/api/v1/items/trending", params={"city": "austin"})
    assert response.status_code == 200

    data = response.json()
    assert data["timeframe"] == "day"
    # Mid Event and Near Venue both have 3 recent; Mid Event scores higher
    assert names(data["results"]) == ["Mid Event", "Near Venue", "Far Venue"]
    assert [r["rank"] for r in data["results"]] == [1, 2, 3]


@pytest.mark.asyncio
async def test_trending_week(client: AsyncClient, seeded_db):
    response = await client.get("/api/v1/items/trending", params={"city": "Austin", "timeframe": "week"})
    assert names(response.json()["results"]) == ["Far Venue", "Mid Event", "Near Venue"]


@pytest.mark.asyncio
async def test_trending_all_time_without_city(client: AsyncClient, seeded_db):
    response = await client.get("/api/v1/items/trending", params={"timeframe": "all"})

    data = response.json()
    assert names(data["results"]) == ["Far Venue", "Near Venue", "Mid Event", "Bowery Ballroom"]
    assert data["total"] == 4


@pytest.mark.asyncio
async def test_trending_excludes_inactive_items(client: AsyncClient, seeded_db):
    """Items without activity are not listed."""
    response = await client.get("/api/v1/items/trending", params={"timeframe": "all"})
    assert "Quiet Venue" not in names(response.json()["results"])


@pytest.mark.asyncio
async def test_trending_kind_filter_and_tag(client: AsyncClient, seeded_db):
    response = await client.get("/api/v1/items/trending", params={"kind": "event"})

    results = response.json()["results"]
    assert names(results) == ["Mid Event"]
    assert results[0]["item"]["kind"] == "event"
    assert results[0]["item"]["starts_at"] is not None


@pytest.mark.asyncio
async def test_trending_limit(client: AsyncClient, seeded_db):
    response = await client.get("/api/v1/items/trending", params={"timeframe": "all", "limit": 2})
    assert names(response.json()["results"]) == ["Far Venue", "Near Venue"]


@pytest.mark.asyncio
async def test_trending_invalid_timeframe(client: AsyncClient):
    response = await client.get("/api/v1/items/trending", params={"timeframe": "month"})
    assert response.status_code == 422


# =============================================================================
# NEARBY
# =============================================================================

@pytest.mark.asyncio
async def test_nearby_excludes_out_of_radius(client: AsyncClient, seeded_db):
    """The popular venue 1700 m away stays out of a 1000 m search."""
    lat, lon = ORIGIN
    response = await client.get(
        "/api/v1/items/nearby",
        params={"lat": lat, "lon": lon, "radius_meters": 1000},
    )
    assert response.status_code == 200

    data = response.json()
    assert names(data["results"]) == ["Quiet Venue", "Near Venue", "Mid Event"]
    assert all(r["distance_meters"] <= 1000 for r in data["results"])


@pytest.mark.asyncio
async def test_nearby_sorted_by_distance(client: AsyncClient, seeded_db):
    """Distance wins over popularity."""
    lat, lon = ORIGIN
    response = await client.get(
        "/api/v1/items/nearby",
        params={"lat": lat, "lon": lon, "radius_meters": 2000},
    )

    results = response.json()["results"]
    assert names(results) == ["Quiet Venue", "Near Venue", "Mid Event", "Far Venue"]

    distances = [r["distance_meters"] for r in results]
    assert distances == sorted(distances)
    assert results[1]["distance_meters"] == pytest.approx(300, abs=2)
    assert results[3]["distance_meters"] == pytest.approx(1701, abs=2)
    assert results[3]["distance_miles"] == pytest.approx(results[3]["distance_meters"] * 0.000621371)


@pytest.mark.asyncio
async def test_nearby_equal_distance_breaks_on_score(client: AsyncClient, seeded_db):
    """Items at the same spot rank by score, highest first."""
    now = datetime.utcnow()
    spot = (51.5010, -0.1200)
    items = [
        Item(id=uuid4(), kind=ItemKind.VENUE, name=name, city="London",
             latitude=spot[0], longitude=spot[1], created_at=now)
        for name in ("Alpha Hall", "Middle Rooms", "Zed Cellar")
    ]
    seeded_db.add_all(items)
    await seeded_db.commit()

    # Alpha Hall 5, Zed Cellar 20, Middle Rooms has no aggregate
    seeded_db.add_all([
        PopularityAggregate(item_id=items[0].id, recent_count=1, weekly_count=0, total_count=0,
                            score=compute_score(1, 0, 0), updated_at=now),
        PopularityAggregate(item_id=items[2].id, recent_count=4, weekly_count=0, total_count=0,
                            score=compute_score(4, 0, 0), updated_at=now),
    ])
    await seeded_db.commit()

    response = await client.get(
        "/api/v1/items/nearby",
        params={"lat": 51.5000, "lon": -0.1200, "radius_meters": 1000},
    )
    results = response.json()["results"]
    assert names(results) == ["Zed Cellar", "Alpha Hall", "Middle Rooms"]
    assert len({r["distance_meters"] for r in results}) == 1


@pytest.mark.asyncio
async def test_nearby_limit_and_kind(client: AsyncClient, seeded_db):
    lat, lon = ORIGIN
    response = await client.get(
        "/api/v1/items/nearby",
        params={"lat": lat, "lon": lon, "radius_meters": 2000, "limit": 2},
    )
    assert names(response.json()["results"]) == ["Quiet Venue", "Near Venue"]

    response = await client.get(
        "/api/v1/items/nearby",
        params={"lat": lat, "lon": lon, "radius_meters": 2000, "kind": "event"},
    )
    assert names(response.json()["results"]) == ["Mid Event"]


@pytest.mark.asyncio
async def test_nearby_missing_coordinates(client: AsyncClient, seeded_db):
    response = await client.get("/api/v1/items/nearby", params={"lat": ORIGIN[0]})
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_argument"


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [
    {"lat": 95.0, "lon": 0.0},
    {"lat": 0.0, "lon": -181.0},
    {"lat": 0.0, "lon": 0.0, "radius_meters": 0},
    {"lat": 0.0, "lon": 0.0, "radius_meters": 10_000_000},
])
async def test_nearby_invalid_arguments(client: AsyncClient, params):
    response = await client.get("/api/v1/items/nearby", params=params)
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_argument"


@pytest.mark.asyncio
async def test_nearby_no_results(client: AsyncClient, seeded_db):
    response = await client.get(
        "/api/v1/items/nearby",
        params={"lat": 0.0, "lon": 0.0, "radius_meters": 1000},
    )
    data = response.json()
    assert data["results"] == []
    assert data["total"] == 0


# =============================================================================
# ITEM DETAIL
# =============================================================================

@pytest.mark.asyncio
async def test_get_item(client: AsyncClient, seeded_db):
    item_id = seeded_db.test_data["items"]["far_venue"]

    response = await client.get(f"/api/v1/items/{item_id}")
    assert response.status_code == 200

    data = response.json()
    assert data["kind"] == "venue"
    assert data["name"] == "Far Venue"
    assert data["popularity"]["score"] == 75.0


@pytest.mark.asyncio
async def test_get_item_without_aggregate(client: AsyncClient, seeded_db):
    item_id = seeded_db.test_data["items"]["quiet_venue"]

    data = (await client.get(f"/api/v1/items/{item_id}")).json()
    assert data["popularity"]["total_count"] == 0
    assert data["popularity"]["score"] == 0.0


@pytest.mark.asyncio
async def test_get_item_not_found(client: AsyncClient):
    response = await client.get(f"/api/v1/items/{uuid4()}")
    assert response.status_code == 404
    data = response.json()
    assert set(data) == {"error", "message"}
    assert data["error"] == "not_found"

"""
Tests for User Endpoints
========================

Tests for:
- GET /api/v1/users/{user_id}/history
- GET /api/v1/users/{user_id}/checkins
"""

from uuid import uuid4

import pytest
from httpx import AsyncClient


async def check_in(client: AsyncClient, user_id, item_id):
    return await client.post(
        "/api/v1/checkins", json={"user_id": str(user_id), "item_id": str(item_id)}
    )


async def check_out(client: AsyncClient, user_id, item_id):
    return await client.post(
        "/api/v1/checkins/checkout", json={"user_id": str(user_id), "item_id": str(item_id)}
    )


@pytest.mark.asyncio
async def test_history_empty(client: AsyncClient, seeded_db):
    user_id = seeded_db.test_data["users"]["cara"]

    response = await client.get(f"/api/v1/users/{user_id}/history")
    assert response.status_code == 200

    data = response.json()
    assert data["total"] == 0
    assert data["venues"] == []
    assert data["events"] == []


@pytest.mark.asyncio
async def test_history_split_by_kind(client: AsyncClient, seeded_db):
    user_id = seeded_db.test_data["users"]["alice"]
    venue_id = seeded_db.test_data["items"]["near_venue"]
    event_id = seeded_db.test_data["items"]["mid_event"]

    await check_in(client, user_id, venue_id)
    await check_in(client, user_id, event_id)

    data = (await client.get(f"/api/v1/users/{user_id}/history")).json()
    assert data["venue_ids"] == [str(venue_id)]
    assert data["event_ids"] == [str(event_id)]
    assert data["events"][0]["kind"] == "event"
    assert data["total_venues"] == 1
    assert data["total_events"] == 1
    assert sorted(data["active_item_ids"]) == sorted([str(venue_id), str(event_id)])


@pytest.mark.asyncio
async def test_history_survives_check_out(client: AsyncClient, seeded_db):
    """Checking out never removes an item from history."""
    user_id = seeded_db.test_data["users"]["alice"]
    venue_id = seeded_db.test_data["items"]["near_venue"]

    await check_in(client, user_id, venue_id)
    await check_out(client, user_id, venue_id)

    data = (await client.get(f"/api/v1/users/{user_id}/history")).json()
    assert data["venue_ids"] == [str(venue_id)]
    assert data["active_item_ids"] == []


@pytest.mark.asyncio
async def test_history_is_a_set(client: AsyncClient, seeded_db):
    """Repeat visits to the same item add one history entry."""
    user_id = seeded_db.test_data["users"]["alice"]
    venue_id = seeded_db.test_data["items"]["near_venue"]

    for _ in range(3):
        assert (await check_in(client, user_id, venue_id)).status_code == 201
        assert (await check_out(client, user_id, venue_id)).status_code == 200

    data = (await client.get(f"/api/v1/users/{user_id}/history")).json()
    assert data["total"] == 1

    records = (await client.get(f"/api/v1/users/{user_id}/checkins")).json()
    assert records["total"] == 3


@pytest.mark.asyncio
async def test_history_unknown_user(client: AsyncClient):
    response = await client.get(f"/api/v1/users/{uuid4()}/history")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_user_checkins_active_only(client: AsyncClient, seeded_db):
    user_id = seeded_db.test_data["users"]["bob"]
    venue_id = seeded_db.test_data["items"]["near_venue"]
    event_id = seeded_db.test_data["items"]["mid_event"]

    await check_in(client, user_id, venue_id)
    await check_in(client, user_id, event_id)
    await check_out(client, user_id, venue_id)

    data = (await client.get(f"/api/v1/users/{user_id}/checkins", params={"active_only": True})).json()
    assert data["total"] == 1
    assert data["records"][0]["item_id"] == str(event_id)


@pytest.mark.asyncio
async def test_user_checkins_unknown_user(client: AsyncClient):
    response = await client.get(f"/api/v1/users/{uuid4()}/checkins")
    assert response.status_code == 404

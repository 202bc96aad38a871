"""
Pytest Configuration and Fixtures
=================================

Shared fixtures for API tests.

The suite runs against a SQLite file; settings are read at import time, so
the environment is prepared before anything from ``app`` is imported.
"""

import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import AsyncGenerator
from uuid import uuid4

TEST_DB_PATH = Path(tempfile.gettempdir()) / "venuepulse_test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REDIS_URL"] = ""
os.environ["ADMIN_API_KEY"] = "test-admin-key"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base, async_session_factory
from app.models import Item, ItemKind, PopularityAggregate, User
from app.popularity import compute_score
from main import app

# Austin, TX. Offsets below are due north: 0.0027° ≈ 300 m, 0.0072° ≈ 800 m,
# 0.0153° ≈ 1700 m.
ORIGIN = (30.2672, -97.7431)

schema_engine = create_engine(f"sqlite:///{TEST_DB_PATH}")


@pytest.fixture(autouse=True)
def reset_database():
    """Fresh schema for every test."""
    Base.metadata.drop_all(schema_engine)
    Base.metadata.create_all(schema_engine)
    yield


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _aggregate(item_id, recent: int, weekly: int, total: int) -> PopularityAggregate:
    return PopularityAggregate(
        item_id=item_id,
        recent_count=recent,
        weekly_count=weekly,
        total_count=total,
        score=compute_score(recent, weekly, total),
        updated_at=datetime.utcnow(),
    )


@pytest_asyncio.fixture(scope="function")
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """
    Seed the database with test data.

    Creates:
    - 3 users (two with legacy ids)
    - 5 items: near venue (300 m), mid event (800 m), far venue (1700 m,
      highest score), quiet venue (no activity) and a New York venue
    - popularity aggregates for all but the quiet venue
    """
    lat, lon = ORIGIN
    now = datetime.utcnow()

    users = {
        "alice": User(id=uuid4(), display_name="Alice", legacy_id="legacy-alice"),
        "bob": User(id=uuid4(), display_name="Bob", legacy_id="legacy-bob"),
        "cara": User(id=uuid4(), display_name="Cara"),
    }
    items = {
        "near_venue": Item(
            id=uuid4(), kind=ItemKind.VENUE, name="Near Venue", city="Austin",
            latitude=lat + 0.0027, longitude=lon, created_at=now - timedelta(days=90),
        ),
        "mid_event": Item(
            id=uuid4(), kind=ItemKind.EVENT, name="Mid Event", city="Austin",
            latitude=lat + 0.0072, longitude=lon, starts_at=now + timedelta(days=2),
            created_at=now - timedelta(days=3),
        ),
        "far_venue": Item(
            id=uuid4(), kind=ItemKind.VENUE, name="Far Venue", city="Austin",
            latitude=lat + 0.0153, longitude=lon, created_at=now - timedelta(days=300),
        ),
        "quiet_venue": Item(
            id=uuid4(), kind=ItemKind.VENUE, name="Quiet Venue", city="Austin",
            latitude=lat - 0.0010, longitude=lon + 0.0010, created_at=now - timedelta(days=10),
        ),
        "nyc_venue": Item(
            id=uuid4(), kind=ItemKind.VENUE, name="Bowery Ballroom", city="New York",
            latitude=40.7204, longitude=-73.9934, created_at=now - timedelta(days=50),
        ),
    }
    db_session.add_all(list(users.values()) + list(items.values()))
    await db_session.commit()

    db_session.add_all([
        _aggregate(items["near_venue"].id, recent=3, weekly=5, total=20),   # score 35
        _aggregate(items["mid_event"].id, recent=3, weekly=8, total=10),    # score 36
        _aggregate(items["far_venue"].id, recent=1, weekly=10, total=100),  # score 75
        _aggregate(items["nyc_venue"].id, recent=5, weekly=5, total=5),     # score 37.5
    ])
    await db_session.commit()

    db_session.test_data = {
        "users": {name: user.id for name, user in users.items()},
        "items": {name: item.id for name, item in items.items()},
    }
    return db_session

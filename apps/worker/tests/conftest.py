"""
Pytest Configuration for Worker Tests
======================================

Fixtures and configuration for testing the worker jobs against a SQLite file.
The environment is prepared before ``worker.config`` reads it.
"""

import os
import tempfile
from datetime import datetime
from pathlib import Path

TEST_DB_PATH = Path(tempfile.gettempdir()) / "venuepulse_test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["REDIS_URL"] = ""

import pytest

from app.database import Base
from worker.database import SyncSessionLocal, sync_engine


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


@pytest.fixture(autouse=True)
def reset_database():
    """Fresh schema for every test."""
    Base.metadata.drop_all(sync_engine)
    Base.metadata.create_all(sync_engine)
    yield


@pytest.fixture
def db_session():
    session = SyncSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def as_of():
    """Fixed reference time for recompute passes."""
    return datetime(2026, 3, 15, 12, 0, 0)

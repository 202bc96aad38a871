"""
Database Connection
===================

Synchronous database access for the worker jobs. The table definitions and
the aggregate/history statement builders are shared with the API package.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from worker.config import settings

logger = logging.getLogger(__name__)


def _engine_options() -> Dict[str, Any]:
    if settings.is_sqlite:
        return {}
    return {"pool_size": 5, "max_overflow": 10}


sync_engine = create_engine(
    settings.sync_database_url,
    pool_pre_ping=True,
    echo=False,
    **_engine_options(),
)

SyncSessionLocal = sessionmaker(
    bind=sync_engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """Get a synchronous database session."""
    session = SyncSessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dialect_name(session: Session) -> str:
    return session.get_bind().dialect.name


# =============================================================================
# HEALTH CHECK
# =============================================================================

def check_database_connection() -> bool:
    """Check if database is accessible."""
    try:
        with get_sync_session() as session:
            session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False

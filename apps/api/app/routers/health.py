"""
Health Check Router
===================

Provides health, readiness, and liveness endpoints.
"""

import logging
from datetime import datetime

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.dependencies import get_db
from app.models import PopularityAggregate
from app.schemas import HealthResponse, ReadyResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


async def _database_ok(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning(f"Database check failed: {e}")
        return False


async def _redis_status() -> str:
    if not settings.redis_url:
        return "not_configured"
    client = aioredis.from_url(settings.redis_url, socket_connect_timeout=1)
    try:
        await client.ping()
        return "healthy"
    except (RedisError, OSError):
        return "unavailable"
    finally:
        await client.aclose()


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """
    Health check endpoint.

    Redis is optional; only the database decides between healthy and degraded.
    """
    db_ok = await _database_ok(db)
    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=settings.api_version,
        timestamp=datetime.utcnow(),
        database="healthy" if db_ok else "unhealthy",
        redis=await _redis_status(),
        environment=settings.environment,
    )


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check(db: AsyncSession = Depends(get_db)) -> ReadyResponse:
    """
    Kubernetes readiness probe.

    Ready once the database answers and the schema is in place.
    """
    checks = {"database": await _database_ok(db), "schema": False}
    if checks["database"]:
        try:
            await db.execute(select(func.count()).select_from(PopularityAggregate))
            checks["schema"] = True
        except SQLAlchemyError as e:
            logger.warning(f"Schema check failed: {e}")

    return ReadyResponse(ready=all(checks.values()), checks=checks)


@router.get("/live")
async def liveness_check() -> dict:
    """Kubernetes liveness probe."""
    return {"alive": True}

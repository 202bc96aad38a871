"""
VenuePulse API
==============
Live check-ins and popularity for venues and events

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from app.config import configure_logging, settings
from app.database import check_database_connection, engine
from app.errors import register_error_handlers
from app.middleware import setup_middleware
from app.routers import (
    admin_router,
    checkins_router,
    health_router,
    items_router,
    users_router,
)

configure_logging()
logger = logging.getLogger("venuepulse")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("VenuePulse API starting up...")
    await check_database_connection()
    logger.info("Database connection verified")
    yield
    logger.info("VenuePulse API shutting down...")
    await engine.dispose()


# OpenAPI tags metadata for better documentation
tags_metadata = [
    {
        "name": "Health",
        "description": "Health check and status endpoints",
    },
    {
        "name": "Check-ins",
        "description": "Check in to and out of venues and events",
    },
    {
        "name": "Items",
        "description": "Trending, nearby and item detail",
    },
    {
        "name": "Users",
        "description": "User history and check-in records",
    },
    {
        "name": "Admin",
        "description": "Admin-only endpoints (requires API key)",
    },
]


app = FastAPI(
    title="VenuePulse API",
    description="""
## Live check-ins and popularity for venues and events

Built on one append-only check-in ledger and two derived views:

- **Ledger**: every check-in and check-out, live or migrated from the legacy platform
- **Popularity**: 24h / 7d / all-time counters and a score per item
- **History**: every venue and event a user has ever checked into

### Consistency

Popularity updates on every check-in and check-out, and is rebuilt from the
ledger by a periodic recompute. Between two passes the counters can lag the
ledger; the next pass corrects them.

### Authentication

Public endpoints require no authentication.
Admin endpoints require `X-API-Key` header.
""",
    version=settings.api_version,
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=tags_metadata,
)

setup_middleware(app)
register_error_handlers(app)


# Include routers
# Health endpoints at root level
app.include_router(health_router)

# API v1 endpoints
app.include_router(checkins_router, prefix="/api/v1")
app.include_router(items_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/", response_class=ORJSONResponse)
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "VenuePulse API",
        "version": settings.api_version,
        "description": "Live check-ins and popularity for venues and events",
        "docs": "/docs",
        "health": "/health",
        "api": {
            "checkin": "/api/v1/checkins",
            "checkout": "/api/v1/checkins/checkout",
            "trending": "/api/v1/items/trending?timeframe=day",
            "nearby": "/api/v1/items/nearby?lat=&lon=&radius_meters=",
            "history": "/api/v1/users/{user_id}/history",
        },
        "timestamp": datetime.utcnow().isoformat(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)

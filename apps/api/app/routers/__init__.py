"""
VenuePulse API Routers
======================

All API routers for the VenuePulse API.
"""

from app.routers.health import router as health_router
from app.routers.checkins import router as checkins_router
from app.routers.items import router as items_router
from app.routers.users import router as users_router
from app.routers.admin import router as admin_router

__all__ = [
    "health_router",
    "checkins_router",
    "items_router",
    "users_router",
    "admin_router",
]

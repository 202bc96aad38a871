"""
FastAPI Dependencies
====================

Common dependencies for dependency injection.
"""

from typing import Optional
from fastapi import Header, HTTPException, status

from app.config import settings
from app.database import get_db

__all__ = ["get_db", "get_admin_api_key"]


async def get_admin_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key")
) -> str:
    """Verify admin API key for protected endpoints."""
    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key header (X-API-Key)"
        )

    if x_api_key != settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key"
        )

    return x_api_key

"""
Health check endpoint.
"""
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db, ping_db
from services.realtime_service import hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check — verifies database connectivity."""
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        await ping_db(db)
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "ERROR",
                "timestamp": timestamp,
                "environment": settings.environment,
                "database": "disconnected",
            },
        )
    return {
        "status": "OK",
        "timestamp": timestamp,
        "environment": settings.environment,
        "database": "connected",
        "realtime": hub.get_stats(),
    }

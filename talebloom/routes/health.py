"""
Health Routes
"""
import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from talebloom import database
from talebloom.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
@router.get("/")
async def health_check():
    """Detailed health check endpoint; 503 while the database is unreachable"""
    try:
        db_ok = await database.check_database()
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        db_ok = False

    body = {
        "status": "OK" if db_ok else "DEGRADED",
        "timestamp": int(time.time() * 1000),
        "env": settings.environment,
        "version": settings.app_version,
        "database": {"status": "connected" if db_ok else "disconnected"},
    }
    return JSONResponse(status_code=200 if db_ok else 503, content=body)

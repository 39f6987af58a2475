"""Health check endpoints."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from dropnow.api.deps import SessionDep
from dropnow.tasks.queue import queue

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - just confirms the service is running."""
    return {"status": "ok"}


@router.get("/db")
async def health_check_db(session: SessionDep):
    """Health check with database connectivity."""
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        logger.error(f"Database health check failed: {e!r}")
        return JSONResponse(
            status_code=503,
            content={"status": "error", "database": "disconnected"},
        )


@router.get("/ready")
async def readiness_check(session: SessionDep):
    """Readiness check for the database and the task queue's Redis.

    Returns 503 if either dependency is unavailable.
    """
    errors = {}

    try:
        await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.error(f"Database readiness check failed: {e!r}")
        db_status = "disconnected"
        errors["database"] = str(e)

    try:
        redis = queue.redis  # type: ignore[attr-defined]
        if redis is None:
            redis_status = "not_initialized"
            errors["redis"] = "Redis client not initialized"
        else:
            await redis.ping()
            redis_status = "connected"
    except Exception as e:
        logger.error(f"Redis readiness check failed: {e!r}")
        redis_status = "disconnected"
        errors["redis"] = str(e)

    response = {
        "status": "ok" if not errors else "degraded",
        "database": db_status,
        "redis": redis_status,
    }
    if errors:
        return JSONResponse(status_code=503, content=response)
    return response

"""
CareLink Service — Health endpoint
"""
import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core.config import get_settings
from app.db.database import engine

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


async def _check_dependency(name: str, check) -> str:
    try:
        await asyncio.wait_for(check(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        return "ok"
    except Exception as exc:
        logger.warning("Health check of %s failed: %s", name, exc)
        return f"error: {str(exc)[:100]}"


async def _check_database():
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


@router.get("/health")
async def health_check(request: Request):
    """The database is required; Redis only backs the rate limiter, so it degrades without failing."""
    deps = {
        "database": await _check_dependency("database", _check_database),
        "redis": await _check_dependency("redis", request.app.state.redis.ping),
    }
    healthy = deps["database"] == "ok"

    return JSONResponse(
        content={
            "status": "healthy" if healthy and deps["redis"] == "ok" else ("degraded" if healthy else "unhealthy"),
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "dependencies": deps,
        },
        status_code=200 if healthy else 503,
    )

"""
Health check routes.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from skillgap.api.deps import get_db
from skillgap.core.config import settings
from skillgap.core.logging import get_logger
from skillgap.schemas.base import BaseSchema

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    checks: dict


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint for monitoring.

    "degraded" when the store or Redis (cache, broker) is unreachable.
    """
    checks = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("health_database_unhealthy", error=str(exc))
        checks["database"] = "unhealthy"

    try:
        await request.app.state.redis.ping()
        checks["redis"] = "healthy"
    except (RedisError, OSError) as exc:
        logger.warning("health_redis_unhealthy", error=str(exc))
        checks["redis"] = "unhealthy"

    all_healthy = all(v == "healthy" for v in checks.values())

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc).isoformat(),
        checks=checks,
    )

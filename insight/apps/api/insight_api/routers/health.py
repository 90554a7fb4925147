"""Health check endpoint."""

import logging

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from insight_api import __version__
from insight_api.db.redis_client import get_redis
from insight_api.db.session import get_db

router = APIRouter()
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    services: dict[str, str]


def check_database(db: Session) -> str:
    """Check database connectivity.

    Returns:
        str: "up" if healthy, error message otherwise
    """
    try:
        db.execute(text("SELECT 1"))
        return "up"
    except SQLAlchemyError as e:
        logger.error("health.database_down", extra={"error_type": type(e).__name__})
        return "down"


def check_redis(redis: Redis) -> str:
    """Check Redis (KPI job queue) connectivity."""
    try:
        redis.ping()
        return "up"
    except RedisError as e:
        logger.error("health.redis_down", extra={"error_type": type(e).__name__})
        return "down"


@router.get("/health", response_model=HealthResponse)
async def health(
    response: Response,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
) -> HealthResponse:
    """Liveness + dependency status.

    503 when the database is down. A down queue only degrades KPI
    recomputation, so it is reported without failing the check.
    """
    services = {"database": check_database(db), "redis": check_redis(redis)}

    if services["database"] != "up":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        overall = "down"
    elif services["redis"] != "up":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(status=overall, version=__version__, services=services)

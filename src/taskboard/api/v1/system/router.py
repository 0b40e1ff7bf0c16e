"""System router providing the health check."""

import logging

from fastapi import APIRouter, Request
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from taskboard.api.responses import JSONAPIResponse
from taskboard.schemas.jsonapi import JSONAPIResource, JSONAPISingleResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_class=JSONAPIResponse)
async def health_check(request: Request) -> JSONAPIResponse:
    """Return system health including database and Redis connectivity.

    The resource has type ``system-health``. Status is ``healthy`` when the
    database answers and Redis is either up or disabled, else ``degraded``.
    """
    db_ok = False
    try:
        async with request.app.state.session_factory() as session:
            await session.execute(text("SELECT 1"))
        db_ok = True
    except (SQLAlchemyError, OSError):
        logger.warning("Database health check failed", exc_info=True)

    redis_client = getattr(request.app.state, "redis", None)
    if redis_client is None:
        redis_state = "disabled"
    else:
        try:
            await redis_client.ping()
            redis_state = "connected"
        except (RedisError, OSError):
            logger.warning("Redis health check failed", exc_info=True)
            redis_state = "disconnected"

    status = "healthy" if db_ok and redis_state != "disconnected" else "degraded"
    document = JSONAPISingleResponse(
        data=JSONAPIResource(
            type="system-health",
            id="current",
            attributes={
                "status": status,
                "database": "connected" if db_ok else "disconnected",
                "redis": redis_state,
            },
        )
    )
    return JSONAPIResponse(content=document.model_dump(mode="json"))

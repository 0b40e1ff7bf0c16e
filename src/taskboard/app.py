"""FastAPI application factory with async lifespan for DB, Redis, registry, and notifier."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from taskboard.api.error_handlers import register_error_handlers
from taskboard.api.v1.router import v1_router
from taskboard.config import get_settings
from taskboard.core.registry import DEFAULT_CATALOGUE, load_registry
from taskboard.database import close_db, get_session_factory, init_db
from taskboard.observability import setup_logging
from taskboard.redis import close_redis, init_redis
from taskboard.services.notifier import LoggingNotifier, RedisNotifier


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle.

    On startup: build the resource registry, initialize the database
    engine, session factory and Redis client, and pick the notifier
    (Redis pub/sub when Redis is reachable, logging otherwise).
    On shutdown: close Redis, then the database.
    """
    settings = get_settings()

    app.state.registry = load_registry(DEFAULT_CATALOGUE)

    engine = await init_db(settings.database_url)
    app.state.db_engine = engine
    app.state.session_factory = get_session_factory(engine)

    app.state.redis = await init_redis(settings.redis_url)
    if app.state.redis is not None:
        app.state.notifier = RedisNotifier(
            app.state.redis, channel_prefix=settings.notification_channel_prefix
        )
    else:
        app.state.notifier = LoggingNotifier()

    yield

    await close_redis(app.state.redis)
    await close_db(engine)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This is the app factory. Uvicorn calls it with the --factory flag:
        uvicorn taskboard.app:create_app --factory
    """
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Taskboard API",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )
    register_error_handlers(app)
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app

"""Shared FastAPI dependencies for database sessions, registry, notifier, and the resource service."""

from collections.abc import AsyncGenerator

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.config import get_settings
from taskboard.core.registry import ResourceRegistry
from taskboard.services.notifier import Notifier
from taskboard.services.resource_service import ResourceService
from taskboard.services.store import SQLAlchemyStore


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session from the app-level session factory.

    The session factory is stored on ``request.app.state.session_factory``
    by the application lifespan. The session auto-closes when the request ends.
    """
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


async def get_registry(request: Request) -> ResourceRegistry:
    """Return the resource registry loaded at startup."""
    return request.app.state.registry


async def get_notifier(request: Request) -> Notifier:
    """Return the notifier chosen at startup (Redis or logging)."""
    return request.app.state.notifier


async def get_actor(x_actor_id: str | None = Header(default=None)) -> str | None:
    """Return the pre-authenticated caller identity from ``X-Actor-Id``."""
    return x_actor_id or None


async def get_resource_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
    registry: ResourceRegistry = Depends(get_registry),
    notifier: Notifier = Depends(get_notifier),
    actor: str | None = Depends(get_actor),
) -> ResourceService:
    """Provide a ResourceService bound to the current DB session and caller."""
    settings = get_settings()
    base_url = str(request.base_url).rstrip("/") + settings.api_prefix
    return ResourceService(
        registry=registry,
        store=SQLAlchemyStore(db, registry),
        notifier=notifier,
        base_url=base_url,
        actor=actor,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )

"""Shared test fixtures: in-memory database, app wiring, HTTP client.

Invariants:
    - Every test gets a fresh in-memory SQLite database with FK enforcement
    - get_db dependency overridden to use the test engine
    - app.state carries the default registry and a RecordingNotifier,
      so no test touches Redis
"""

import os

os.environ.setdefault("TASKBOARD_REDIS_URL", "")
os.environ.setdefault("TASKBOARD_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from taskboard.api.deps import get_db
from taskboard.app import create_app
from taskboard.core.registry import DEFAULT_CATALOGUE, load_registry
from taskboard.database import enable_sqlite_foreign_keys
from taskboard.models import Base
from taskboard.services.notifier import Notifier


class RecordingNotifier(Notifier):
    """Notifier double that records every send, or fails every send."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, list[str], dict]] = []
        self.fail = fail

    async def send(self, recipients, kind, context) -> None:
        if self.fail:
            raise ConnectionError("notification transport down")
        self.sent.append((kind, [str(r) for r in recipients], context))


@pytest.fixture
def registry():
    return load_registry(DEFAULT_CATALOGUE)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def seed(session_factory):
    """Persist model instances in their own session and return them refreshed."""

    async def _seed(*objects):
        async with session_factory() as session:
            session.add_all(objects)
            await session.commit()
            for obj in objects:
                await session.refresh(obj)
        return objects[0] if len(objects) == 1 else objects

    return _seed


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def client(session_factory, registry, notifier):
    """FastAPI test client with DB dependency overridden."""
    app = create_app()
    app.state.registry = registry
    app.state.session_factory = session_factory
    app.state.notifier = notifier
    app.state.redis = None

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()

"""Pytest configuration and shared fixtures.

Every test gets its own SQLite database file and its own service container,
so no state leaks between tests. Time-dependent services share a FakeClock
that tests advance explicitly.
"""

import asyncio
import os
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

# Set testing mode BEFORE importing the app: NullPool, memory rate-limit storage
os.environ["TESTING"] = "true"

from medreminder.config import Settings
from medreminder.container import ServiceContainer
from medreminder.database import build_engine
from medreminder.main import create_app
from medreminder.models import Base, CreatedVia, User

BOT_KEY = "test-bot-key-0123456789abcdef0123456789"


class FakeClock:
    """Settable UTC clock injected into the session and code services."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(UTC).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        "testing": True,
        "bot_api_key": BOT_KEY,
        # httpx only resends secure cookies over https
        "cookie_secure": False,
        "frontend_url": "http://frontend.test",
        "log_format": "text",
    }
    values.update(overrides)
    return Settings(**values)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest_asyncio.fixture
async def db_engine(test_settings) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database with the full schema."""
    engine = build_engine(test_settings.database_url, testing=True)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def container(
    test_settings, db_engine, clock
) -> AsyncGenerator[ServiceContainer, None]:
    services = ServiceContainer.build(test_settings, db_engine, clock=clock)
    services.start()
    yield services
    services.stop()


@pytest.fixture
def app(container):
    return create_app(container)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the per-test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def bot_headers() -> dict[str, str]:
    return {"X-Bot-Key": BOT_KEY}


@pytest_asyncio.fixture
async def user(container) -> User:
    return await container.store.create_user(CreatedVia.PWA)


@pytest_asyncio.fixture
async def session_token(container, user) -> str:
    return await container.sessions.issue_session(user.uid)


@pytest.fixture
def sync_container(tmp_path) -> Iterator[ServiceContainer]:
    """Container for tests that drive the app through Starlette's TestClient.

    TestClient runs the app on its own event loop, so the schema is created
    up front on a throwaway loop.
    """
    settings = make_settings(tmp_path, push_idle_timeout_seconds=5.0)
    engine = build_engine(settings.database_url, testing=True)
    asyncio.run(create_schema(engine))
    yield ServiceContainer.build(settings, engine)
    asyncio.run(engine.dispose())

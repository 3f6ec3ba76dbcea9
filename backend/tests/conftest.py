"""
Pytest configuration and fixtures for device registrar tests.

Provides:
- Async SQLite in-memory database setup (one fresh database per test)
- A plugin registry with the built-in plugin plus a test controller plugin
- The registration orchestrator wired to that registry
- FastAPI app with dependency overrides and an AsyncClient for it
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base, configure_sqlite, get_db
from main import create_app
from plugins.characteristics import CharacteristicPlugin
from plugins.registry import build_default_registry
from services.registration import RegistrationOrchestrator


class ControllerMockOnePlugin(CharacteristicPlugin):
    """Controller that recognises returning devices by their ``id_key``."""

    kind = "controllermockone"

    async def identify_existing(self, db, attributes):
        return await self.find_device_by_characteristic(db, "id_key", attributes.get("id_key"))


async def _count_rows(db: AsyncSession, model_cls) -> int:
    result = await db.execute(select(func.count()).select_from(model_cls))
    return result.scalar_one()


@pytest_asyncio.fixture
async def session_factory():
    """
    Session factory bound to a fresh in-memory database.

    StaticPool keeps every session on the same connection, otherwise each
    connection would see its own empty :memory: database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    configure_sqlite(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """
    Session factory bound to a fresh SQLite file.

    Unlike ``session_factory`` every session gets its own pooled
    connection, so concurrent sessions contend for the database lock
    the way concurrent requests do.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'registrar.db'}",
        echo=False,
    )
    configure_sqlite(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A session on the test database, closed after the test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def count_rows():
    """``await count_rows(db, Model)`` returns the number of rows in its table."""
    return _count_rows


@pytest.fixture
def registry():
    """Default registry plus the ``controllermockone`` test plugin."""
    registry = build_default_registry()
    registry.register(ControllerMockOnePlugin(), tag="Controllermockone")
    return registry


@pytest.fixture
def orchestrator(registry):
    return RegistrationOrchestrator(registry)


@pytest_asyncio.fixture
async def async_client(session_factory, registry):
    """
    Create an AsyncClient pointing to an app built around the test
    registry, with ``get_db`` overridden to use the test database.

    Yields:
        httpx.AsyncClient: Async HTTP client for making requests to the app.
    """
    app = create_app(registry)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()

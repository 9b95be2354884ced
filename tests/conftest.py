"""Pytest configuration and shared fixtures.

Tests run against in-memory sqlite. The connection is put in autocommit mode
and BEGIN is emitted by hand so SAVEPOINTs (waitlist promotion) behave the
way they do on PostgreSQL.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["DB_SCHEMA"] = ""
os.environ.setdefault("SECRET_KEY_ACCESS_TOKEN", "test-secret")
os.environ.setdefault("PUBLIC_BASE_URL", "https://studio.test")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from wellnest.db.postgresql import Base, get_db
from wellnest.main import app
from wellnest.services.notifications import notifier


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _autocommit(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(db):
    """HTTP client sharing the test session with the app."""

    async def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def record_notifications():
    """Keep what the shared notifier sends for the duration of one test."""
    notifier.sent = []
    yield
    notifier.sent = None

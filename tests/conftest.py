"""Shared test fixtures.

Tests run against a throwaway SQLite file through aiosqlite. pysqlite's own
transaction handling is switched off so SQLAlchemy emits BEGIN itself,
which is what makes SAVEPOINTs (insert-if-absent) behave as on PostgreSQL.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

os.environ["AH_JWT_SECRET"] = "test-secret-key-with-at-least-32-bytes!!"
os.environ["AH_PUSH_PROVIDER"] = "log"

from afterhours.auth.jwt import create_access_token  # noqa: E402
from afterhours.config import get_settings  # noqa: E402
from afterhours.database import get_session  # noqa: E402
from afterhours.db.base import Base  # noqa: E402
from afterhours.gamification.seed import seed_achievements  # noqa: E402
from afterhours.main import create_app  # noqa: E402
from afterhours.notifications.push import BasePushProvider, DeliveryStatus, PushService  # noqa: E402

get_settings.cache_clear()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database per test, schema created from the ORM models."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'afterhours.db'}")

    @event.listens_for(test_engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for service tests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """Session with the achievement catalog seeded."""
    await seed_achievements(db_session)
    return db_session


@pytest_asyncio.fixture
async def add_rows(session_factory) -> Callable:
    """Insert rows through a short-lived session and commit."""

    async def _add(*rows) -> None:
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()

    return _add


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client bound to the test database.

    The lifespan is not run: the database comes from ``session_factory`` and
    Redis stays uninitialized, which the app treats as "no broadcasts".
    """
    async with session_factory() as session:
        await seed_achievements(session)

    app = create_app()

    async def _test_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _test_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _bearer(user_id: str, role: str = "authenticated") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Bearer header factory for tokens minted the way the identity provider does."""
    return _bearer


@pytest.fixture
def scheduler_headers() -> dict[str, str]:
    return _bearer("scheduler", role=get_settings().scheduler_role)


class FakeRedis:
    """Records pub/sub broadcasts instead of sending them."""

    def __init__(self) -> None:
        self.published: list[tuple[str, str]] = []

    async def publish(self, channel: str, payload: str) -> int:
        self.published.append((channel, payload))
        return 1

    def channels(self) -> list[str]:
        return [channel for channel, _ in self.published]


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


class RecordingPushProvider(BasePushProvider):
    """Push provider that records deliveries; tokens in ``invalid`` are rejected."""

    def __init__(self, invalid: set[str] | None = None) -> None:
        self.invalid = invalid or set()
        self.sent: list[dict] = []

    async def send(self, token: str, title: str, body: str, data: dict[str, str]) -> DeliveryStatus:
        if token in self.invalid:
            return DeliveryStatus.INVALID_TOKEN
        self.sent.append({"token": token, "title": title, "body": body, "data": data})
        return DeliveryStatus.SENT


@pytest.fixture
def push_provider() -> RecordingPushProvider:
    return RecordingPushProvider()


@pytest.fixture
def push_service(push_provider: RecordingPushProvider) -> PushService:
    return PushService(provider=push_provider)

"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production-use-0123456789")
os.environ.setdefault("OPERATOR_API_KEY", "test-operator-key")
os.environ.setdefault("OPERATOR_EMAIL", "operator@satoshi.io")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from satoshi_daily import database, redis_client  # noqa: E402
from satoshi_daily.config import get_settings  # noqa: E402
from satoshi_daily.db.base import Base  # noqa: E402
from satoshi_daily.db import models  # noqa: E402, F401
from satoshi_daily.dependencies import (  # noqa: E402
    get_captcha_verifier,
    get_operator_notifier,
    get_price_oracle,
)
from fakes import FakeRedis, FixedOracle, RecordingNotifier, StubVerifier  # noqa: E402

get_settings.cache_clear()

# 12:00 UTC; the 2026-10-19 target is 19:40 so the game is open.
DEFAULT_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

_CLOCK_MODULES = [
    "satoshi_daily.game.day_utils",
    "satoshi_daily.predictions.service",
    "satoshi_daily.predictions.router",
    "satoshi_daily.auth.service",
    "satoshi_daily.views.service",
    "satoshi_daily.settlement.service",
    "satoshi_daily.admin.service",
    "satoshi_daily.analytics.router",
]


@dataclass
class Clock:
    now: datetime = DEFAULT_NOW


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> Clock:
    """Freeze ``utc_now`` everywhere it was imported."""
    frozen = Clock()
    for module in _CLOCK_MODULES:
        monkeypatch.setattr(f"{module}.utc_now", lambda: frozen.now)
    return frozen


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(
    engine: AsyncEngine, monkeypatch: pytest.MonkeyPatch
) -> async_sessionmaker[AsyncSession]:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(database, "_engine", engine)
    monkeypatch.setattr(database, "_session_factory", factory)
    return factory


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service calls and assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
    fake = FakeRedis()
    monkeypatch.setattr(redis_client, "_pool", fake)
    return fake


@pytest.fixture
def verifier() -> StubVerifier:
    return StubVerifier()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def oracle() -> FixedOracle:
    return FixedOracle()


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: FakeRedis,
    clock: Clock,
    verifier: StubVerifier,
    notifier: RecordingNotifier,
    oracle: FixedOracle,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the app with in-memory storage and stubbed outbound calls."""
    from satoshi_daily.main import create_app

    app = create_app()
    app.dependency_overrides[get_captcha_verifier] = lambda: verifier
    app.dependency_overrides[get_operator_notifier] = lambda: notifier
    app.dependency_overrides[get_price_oracle] = lambda: oracle

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _sign_in(client: AsyncClient, email: str = "satoshi@gmx.com") -> dict[str, Any]:
    response = await client.post(
        "/api/v1/auth/signin",
        json={"email": email, "captcha_token": "ok", "marketing_consent": True},
    )
    assert response.status_code == 200, response.text
    session = await client.post(
        "/api/v1/auth/session", json={"token_hash": response.json()["token_hash"]}
    )
    assert session.status_code == 200, session.text
    data = session.json()
    client.headers["Authorization"] = f"Bearer {data['access_token']}"
    return data


@pytest.fixture
def sign_in() -> Any:
    """Sign in through the API and attach the bearer token to the client."""
    return _sign_in


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient) -> AsyncClient:
    await _sign_in(client)
    return client


@pytest.fixture
def make_player(db_session: AsyncSession) -> Any:
    """Create a profile and return its id."""
    from satoshi_daily.auth.service import get_or_create_profile

    async def _make(email: str) -> str:
        profile, _ = await get_or_create_profile(db_session, email, DEFAULT_NOW)
        await db_session.commit()
        return profile.id

    return _make

"""Global test configuration and fixtures for the Studio Gem API."""

import os

os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-key-for-testing-only")
os.environ.setdefault("GEM_STORE_BACKEND", "sql")

from collections.abc import AsyncGenerator
from typing import Callable
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.api.core.constants import JWT_ALGORITHM, JWT_AUDIENCE
from src.database.models import Base, FeatureGemCost, Profile, UserGems
from src.modules.auth.retry import RetryPolicy
from src.modules.gems.costs import FeatureCostResolver
from src.modules.gems.ledger import LedgerClient
from src.modules.gems.memory import InMemoryBalanceStore, InMemoryUsageLog
from src.modules.gems.store import FeatureCost
from src.utils.settings.auth import AuthSettings
from tests.factories import (
    FeatureGemCostFactory,
    ProfileFactory,
    UserGemsFactory,
    UserRoleFactory,
)

# Retries without waiting
FAST_RETRY = RetryPolicy(attempts=2, base_delay=0, max_delay=0)


@pytest.fixture(autouse=True)
def disable_external_cache(monkeypatch):
    """Stub cache helpers so tests do not require Redis."""

    async def _noop_get_cache(*_args, **_kwargs):
        return None

    async def _noop_set_cache(*_args, **_kwargs):
        return True

    async def _noop_delete_cache(*_args, **_kwargs):
        return 0

    monkeypatch.setattr("src.cache.decorator._get_cache", _noop_get_cache)
    monkeypatch.setattr("src.cache.decorator._set_cache", _noop_set_cache)
    monkeypatch.setattr("src.cache.decorator._delete_cache", _noop_delete_cache)


# In-memory ledger fixtures
@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def memory_store() -> InMemoryBalanceStore:
    return InMemoryBalanceStore(
        feature_costs=[
            FeatureCost("dress-change", 3, "Dress Change", "high-impact"),
            FeatureCost("generate-caption", 1, "Generate Caption", "quick-tools"),
        ]
    )


@pytest.fixture
def usage_log() -> InMemoryUsageLog:
    return InMemoryUsageLog()


@pytest.fixture
def cost_resolver(memory_store) -> FeatureCostResolver:
    return FeatureCostResolver(memory_store, default_cost=1)


@pytest.fixture
def ledger_factory(memory_store, cost_resolver, user_id):
    """Build a loaded ledger for ``user_id`` starting at ``balance`` gems."""

    async def create_ledger(balance: int = 10) -> LedgerClient:
        if balance:
            await memory_store.credit(user_id, balance, "topup")
        ledger = LedgerClient(memory_store, cost_resolver, user_id, FAST_RETRY)
        await ledger.refresh()
        await cost_resolver.ensure_loaded()
        return ledger

    return create_ledger


# Database fixtures
@pytest_asyncio.fixture
async def async_engine(tmp_path):
    """SQLite database file per test with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def app(session_factory) -> AsyncGenerator[FastAPI, None]:
    """Create FastAPI application with lifespan manager for testing."""
    from src.main import app

    app.state.session_factory = session_factory
    async with LifespanManager(app):
        yield app
    app.state.session_factory = None


# Test data fixtures
@pytest_asyncio.fixture
async def test_profile(db_session: AsyncSession) -> Profile:
    return await ProfileFactory.create_async(db_session)


@pytest_asyncio.fixture
async def test_gems(db_session: AsyncSession, test_profile: Profile) -> UserGems:
    return await UserGemsFactory.create_async(
        db_session, user_id=test_profile.user_id, gems_balance=10
    )


@pytest_asyncio.fixture
async def test_feature_cost(db_session: AsyncSession) -> FeatureGemCost:
    return await FeatureGemCostFactory.create_async(
        db_session,
        feature_key="dress-change",
        feature_name="Dress Change",
        gem_cost=3,
        category="high-impact",
    )


@pytest_asyncio.fixture
async def test_admin_profile(db_session: AsyncSession) -> Profile:
    profile = await ProfileFactory.create_async(db_session, full_name="Admin User")
    await UserRoleFactory.create_async(db_session, user_id=profile.user_id)
    return profile


# JWT token fixtures
@pytest.fixture()
def jwt_token_factory() -> Callable[..., str]:
    """Factory for creating Supabase-style JWT tokens for test users."""
    auth_settings = AuthSettings()

    def create_token(
        user_id: str, email: str, name: str = "Test User", role: str = "authenticated"
    ) -> str:
        payload = {
            "sub": user_id,
            "email": email,
            "role": role,
            "aud": JWT_AUDIENCE,
            "user_metadata": {"full_name": name, "name": name},
            "app_metadata": {"provider": "email", "providers": ["email"]},
            "is_anonymous": role == "anon",
        }
        return jwt.encode(payload, auth_settings.SUPABASE_JWT_SECRET, algorithm=JWT_ALGORITHM)

    return create_token


@pytest.fixture
def user_token(test_profile: Profile, jwt_token_factory) -> str:
    return jwt_token_factory(str(test_profile.user_id), test_profile.email)


@pytest.fixture
def admin_token(test_admin_profile: Profile, jwt_token_factory) -> str:
    return jwt_token_factory(
        str(test_admin_profile.user_id), test_admin_profile.email, "Admin User"
    )


# HTTP client fixtures
@pytest_asyncio.fixture
async def public_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create HTTP client for testing public endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test-studio-api",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def authorized_client(
    app: FastAPI, user_token: str
) -> AsyncGenerator[AsyncClient, None]:
    """Create HTTP client with JWT authorization headers."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test-studio-api",
        headers={"Authorization": f"Bearer {user_token}"},
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(
    app: FastAPI, admin_token: str
) -> AsyncGenerator[AsyncClient, None]:
    """Create HTTP client with admin JWT authorization headers."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test-studio-api",
        headers={"Authorization": f"Bearer {admin_token}"},
    ) as ac:
        yield ac

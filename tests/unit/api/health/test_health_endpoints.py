"""Health check endpoints tests."""

from unittest.mock import AsyncMock

import pytest
from fastapi import status
from httpx import AsyncClient


@pytest.fixture
def fake_redis(monkeypatch):
    redis_client = AsyncMock()
    redis_client.ping = AsyncMock(return_value=True)

    async def _get_redis_client():
        return redis_client

    monkeypatch.setattr("src.api.health.router.get_redis_client", _get_redis_client)
    return redis_client


@pytest.mark.asyncio
async def test_root_endpoint(app, public_client: AsyncClient):
    response = await public_client.get("/")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["service"] == "studio-gem-api"


@pytest.mark.asyncio
async def test_health_check_all_healthy(app, public_client: AsyncClient, fake_redis):
    response = await public_client.get("/health/")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "healthy"
    assert set(data["services"]) == {"gem_store", "database", "redis"}
    assert data["services"]["gem_store"]["details"]["backend"] == "SqlBalanceStore"


@pytest.mark.asyncio
async def test_redis_outage_only_degrades(app, public_client: AsyncClient, fake_redis):
    fake_redis.ping.side_effect = ConnectionError("redis down")

    response = await public_client.get("/health/")

    data = response.json()
    assert data["status"] == "degraded"
    assert data["services"]["redis"]["connected"] is False


@pytest.mark.asyncio
async def test_gem_store_outage_is_unhealthy(app, public_client: AsyncClient, fake_redis):
    app.state.balance_store.read_feature_costs = AsyncMock(side_effect=ConnectionError("db down"))

    response = await public_client.get("/health/")

    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["services"]["gem_store"]["error"] == "db down"


@pytest.mark.asyncio
async def test_liveness_check(app, public_client: AsyncClient):
    response = await public_client.get("/health/liveness")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "alive"

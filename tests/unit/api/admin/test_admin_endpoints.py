"""Admin console endpoint tests."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

from src.api.core.messages import MessageCode
from tests.factories import GenerationHistoryFactory
from tests.utils.assertions import (
    assert_permission_error,
    assert_success_response,
    assert_validation_error,
)


@pytest.mark.asyncio
async def test_regular_user_cannot_set_gems(
    app, authorized_client: AsyncClient, test_gems
):
    response = await authorized_client.put(
        f"/v1/admin/users/{test_gems.user_id}/gems", json={"gems": 1000}
    )

    assert_permission_error(response)


@pytest.mark.asyncio
async def test_admin_sets_and_adds_gems(
    app, admin_client: AsyncClient, authorized_client: AsyncClient, test_gems
):
    set_response = await admin_client.put(
        f"/v1/admin/users/{test_gems.user_id}/gems", json={"gems": 40}
    )
    add_response = await admin_client.post(
        f"/v1/admin/users/{test_gems.user_id}/gems",
        json={"gems": 250, "transaction_type": "subscription", "subscription_type": "monthly-pro"},
    )

    assert_success_response(set_response, MessageCode.UPDATED, data_assertions={"gems_balance": 40})
    assert_success_response(add_response, MessageCode.UPDATED, data_assertions={"gems_balance": 290})

    balance = await authorized_client.get("/v1/gems/balance")
    assert_success_response(
        balance,
        data_assertions={
            "balance": 290,
            "subscription_type": "monthly-pro",
            "subscription_active": True,
        },
    )


@pytest.mark.asyncio
async def test_negative_gems_fail_validation(app, admin_client: AsyncClient):
    response = await admin_client.put(f"/v1/admin/users/{uuid4()}/gems", json={"gems": -1})

    assert_validation_error(response)


@pytest.mark.asyncio
async def test_admin_sets_subscription(app, admin_client: AsyncClient, test_gems):
    response = await admin_client.put(
        f"/v1/admin/users/{test_gems.user_id}/subscription",
        json={"subscription_type": "weekly-spark", "days": 7},
    )

    assert_success_response(
        response,
        MessageCode.UPDATED,
        data_assertions={"subscription_type": "weekly-spark", "gems_balance": 10},
    )


@pytest.mark.asyncio
async def test_blocking_locks_user_out(
    app, admin_client: AsyncClient, authorized_client: AsyncClient, test_profile
):
    assert (await authorized_client.get("/v1/gems/balance")).status_code == 200

    response = await admin_client.put(
        f"/v1/admin/users/{test_profile.user_id}/block", json={"blocked": True}
    )
    assert_success_response(response, MessageCode.UPDATED, data_assertions={"is_blocked": True})

    locked = await authorized_client.get("/v1/gems/balance")
    assert locked.status_code == 403
    assert locked.json()["message_code"] == MessageCode.ACCOUNT_BLOCKED.value


@pytest.mark.asyncio
async def test_feature_cost_update_applies_immediately(
    app, admin_client: AsyncClient, public_client: AsyncClient, test_feature_cost
):
    response = await admin_client.put(
        "/v1/admin/feature-costs/dress-change", json={"gem_cost": 5}
    )
    assert_success_response(response, MessageCode.UPDATED, data_assertions={"gem_cost": 5})

    costs = await public_client.get("/v1/gems/costs")
    features = {f["feature_key"]: f["cost"] for f in costs.json()["data"]["features"]}
    assert features["dress-change"] == 5


@pytest.mark.asyncio
async def test_list_users_and_history(
    app, admin_client: AsyncClient, db_session, test_profile
):
    await GenerationHistoryFactory.create_batch_async(db_session, 3)

    users = await admin_client.get("/v1/admin/users")
    history = await admin_client.get("/v1/admin/generation-history", params={"limit": 2})

    assert_success_response(users, data_assertions={"pagination.total": 2})
    data = assert_success_response(
        history, data_assertions={"pagination.total": 3, "pagination.has_more": True}
    )
    assert len(data["items"]) == 2

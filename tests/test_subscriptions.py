"""Test plan limits and usage reporting."""
from uuid import UUID

import pytest
from conftest import set_plan

from core.errors import LimitExceededError, ValidationError
from domains.subscriptions.models.schemas import Resource
from domains.subscriptions.service import (
    check_usage_limit,
    decrement_usage,
    enforce_usage_limit,
    increment_usage,
    reset_monthly_usage,
)


@pytest.mark.asyncio
async def test_new_organization_is_on_free_plan(client, owner):
    subscription = (await client.get("/api/subscriptions", headers=owner["headers"])).json()
    assert subscription["plan"] == "FREE"
    assert subscription["status"] == "ACTIVE"


@pytest.mark.asyncio
async def test_usage_summary_counts_rows(client, owner):
    headers = owner["headers"]
    await client.post("/api/crm/contacts", json={"first_name": "Jane"}, headers=headers)
    usage = (await client.get("/api/subscriptions/usage", headers=headers)).json()["usage"]
    assert usage["contacts"] == {"allowed": True, "limit": 50, "used": 1, "remaining": 49}
    assert usage["users"]["used"] == 1
    assert set(usage) == {r.value for r in Resource}


@pytest.mark.asyncio
async def test_plans_listing(client):
    plans = (await client.get("/api/subscriptions/plans")).json()["data"]
    assert plans["FREE"]["contacts"] == 50
    assert plans["PRO"]["ai_credits"] == -1
    assert plans["ENTERPRISE"]["users"] == -1


@pytest.mark.asyncio
async def test_unlimited_plan(client, owner, session_factory):
    await set_plan(session_factory, owner["organization_id"], "ENTERPRISE")
    usage = (await client.get("/api/subscriptions/usage/contacts", headers=owner["headers"])).json()
    assert usage == {"allowed": True, "limit": -1, "used": 0, "remaining": -1}


@pytest.mark.asyncio
async def test_limit_exceeded_message(client, owner, session_factory):
    org_id = UUID(owner["organization_id"])
    async with session_factory() as session:
        await increment_usage(session, org_id, Resource.AI_CREDITS, amount=10)
        await session.commit()

    async with session_factory() as session:
        with pytest.raises(LimitExceededError) as exc:
            await enforce_usage_limit(session, org_id, Resource.AI_CREDITS)
    assert exc.value.status_code == 402
    assert exc.value.message == "You have reached your plan limit of 10 ai credits. Upgrade your plan to add more."


@pytest.mark.asyncio
async def test_metered_counters(client, owner, session_factory):
    org_id = UUID(owner["organization_id"])
    async with session_factory() as session:
        await increment_usage(session, org_id, Resource.STORAGE, amount=30)
        await decrement_usage(session, org_id, Resource.STORAGE, amount=45)
        await increment_usage(session, org_id, Resource.AI_CREDITS, amount=3)
        with pytest.raises(ValidationError):
            await increment_usage(session, org_id, Resource.CONTACTS)

        assert (await check_usage_limit(session, org_id, Resource.STORAGE))["used"] == 0
        assert (await check_usage_limit(session, org_id, Resource.AI_CREDITS))["used"] == 3

        assert await reset_monthly_usage(session, org_id) == 1
        assert (await check_usage_limit(session, org_id, Resource.AI_CREDITS))["used"] == 0

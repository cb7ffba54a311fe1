"""Subscriptions API router: plan and usage of the active organization."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_org
from core.database import get_session
from domains.accounts.service import OrgSession
from domains.subscriptions import service
from domains.subscriptions.models.schemas import PlanType, Resource
from patterns.domain_config import get_business_config

router = APIRouter()


@router.get("")
async def get_subscription(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return (await service.get_subscription(session, org.organization_id)).to_dict()


@router.get("/usage")
async def get_usage(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.usage_summary(session, org.organization_id)


@router.get("/usage/{resource}")
async def check_usage(
    resource: Resource,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.check_usage_limit(session, org.organization_id, resource)


@router.get("/plans")
async def list_plans():
    """Limits of every plan; ``-1`` means unlimited."""
    plans = get_business_config().plans
    return {"data": {plan.value: asdict(plans.for_plan(plan.value)) for plan in PlanType}}

"""Plan limits and usage metering.

Counted resources (contacts, deals, documents, automations, users) are row
counts; AI credits and storage are counters on the Subscription row. The
decision itself is the pure ``check_usage_limit`` rule.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import LimitExceededError, ValidationError
from domains.accounts.models.db_models import Membership, Organization
from domains.automations.models.db_models import Automation
from domains.crm.models.db_models import Contact, Deal
from domains.documents.models.db_models import Document
from domains.subscriptions.models.db_models import Subscription
from domains.subscriptions.models.schemas import PlanType, Resource, SubscriptionStatus
from patterns.domain_config import UNLIMITED, get_business_config
from patterns.rules_engine import check_usage_limit as usage_rule

logger = logging.getLogger(__name__)

_COUNTED = {
    Resource.CONTACTS: Contact,
    Resource.DEALS: Deal,
    Resource.DOCUMENTS: Document,
    Resource.AUTOMATIONS: Automation,
    Resource.USERS: Membership,
}

_METERED = {
    Resource.AI_CREDITS: Subscription.ai_credits_used,
    Resource.STORAGE: Subscription.storage_used_mb,
}

_STRIPE_STATUS = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete": SubscriptionStatus.INCOMPLETE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


async def get_subscription(session: AsyncSession, organization_id: UUID) -> Subscription:
    """Return the organization's subscription, creating a FREE one if absent."""
    stmt = select(Subscription).where(Subscription.organization_id == organization_id)
    subscription = (await session.execute(stmt)).scalar_one_or_none()
    if subscription is None:
        subscription = Subscription(organization_id=organization_id, plan=PlanType.FREE.value)
        session.add(subscription)
        await session.flush()
    return subscription


async def check_usage_limit(
    session: AsyncSession,
    organization_id: UUID,
    resource: Resource | str,
) -> dict:
    """``{allowed, limit, used, remaining}`` for one resource."""
    resource = Resource(resource)
    subscription = await get_subscription(session, organization_id)
    limits = get_business_config().plans.for_plan(subscription.plan)
    limit = limits.get(resource.value)

    if limit == UNLIMITED:
        return usage_rule(resource.value, UNLIMITED, 0).details

    if resource in _COUNTED:
        model = _COUNTED[resource]
        stmt = select(func.count()).select_from(model).where(model.organization_id == organization_id)
        used = (await session.execute(stmt)).scalar() or 0
    elif resource is Resource.AI_CREDITS:
        used = subscription.ai_credits_used
    else:
        used = round(subscription.storage_used_mb or 0.0, 2)

    return usage_rule(resource.value, limit, used).details


async def enforce_usage_limit(
    session: AsyncSession,
    organization_id: UUID,
    resource: Resource | str,
    amount: float = 1,
) -> dict:
    """Raise LimitExceededError unless ``amount`` more units fit the plan."""
    usage = await check_usage_limit(session, organization_id, resource)
    if not usage["allowed"] or (usage["limit"] != UNLIMITED and amount > usage["remaining"]):
        label = Resource(resource).value.replace("_", " ")
        raise LimitExceededError(label, usage["limit"])
    return usage


async def increment_usage(
    session: AsyncSession,
    organization_id: UUID,
    resource: Resource | str,
    amount: float = 1,
) -> None:
    """Bump a metered counter (AI credits or storage MB)."""
    resource = Resource(resource)
    column = _METERED.get(resource)
    if column is None:
        raise ValidationError(f"{resource.value} usage is counted, not metered")
    await get_subscription(session, organization_id)
    stmt = (
        update(Subscription)
        .where(Subscription.organization_id == organization_id)
        .values({column.key: column + amount})
        .execution_options(synchronize_session="fetch")
    )
    await session.execute(stmt)


async def decrement_usage(
    session: AsyncSession,
    organization_id: UUID,
    resource: Resource | str,
    amount: float = 1,
) -> None:
    """Release metered usage; counters never go below zero."""
    resource = Resource(resource)
    column = _METERED.get(resource)
    if column is None:
        raise ValidationError(f"{resource.value} usage is counted, not metered")
    subscription = await get_subscription(session, organization_id)
    current = getattr(subscription, column.key) or 0
    setattr(subscription, column.key, max(0, current - amount))
    await session.flush()


async def reset_monthly_usage(session: AsyncSession, organization_id: UUID | None = None) -> int:
    """Reset AI credits (the only monthly counter). All organizations when no id is given."""
    stmt = update(Subscription).values(ai_credits_used=0)
    if organization_id is not None:
        stmt = stmt.where(Subscription.organization_id == organization_id)
    result = await session.execute(stmt.execution_options(synchronize_session="fetch"))
    logger.info("Reset monthly AI credits for %s subscription(s)", result.rowcount)
    return result.rowcount


async def usage_summary(session: AsyncSession, organization_id: UUID) -> dict:
    subscription = await get_subscription(session, organization_id)
    return {
        "subscription": subscription.to_dict(),
        "usage": {
            resource.value: await check_usage_limit(session, organization_id, resource)
            for resource in Resource
        },
    }


async def apply_stripe_subscription(session: AsyncSession, stripe_subscription: dict, deleted: bool = False) -> bool:
    """Sync plan/status from a Stripe subscription object.

    The organization is taken from ``metadata.organizationId`` and the plan
    from ``metadata.plan``. Returns False when the event names no known
    organization.
    """
    metadata = stripe_subscription.get("metadata") or {}
    org_ref = metadata.get("organizationId") or metadata.get("organization_id")
    if not org_ref:
        logger.warning("Stripe subscription %s has no organization metadata", stripe_subscription.get("id"))
        return False
    try:
        organization_id = UUID(str(org_ref))
    except ValueError:
        logger.warning("Stripe subscription %s has invalid organization id %r", stripe_subscription.get("id"), org_ref)
        return False

    if await session.get(Organization, organization_id) is None:
        logger.warning("Stripe subscription %s references unknown organization %s", stripe_subscription.get("id"), organization_id)
        return False

    subscription = await get_subscription(session, organization_id)
    subscription.stripe_subscription_id = stripe_subscription.get("id")
    subscription.stripe_customer_id = stripe_subscription.get("customer") or subscription.stripe_customer_id

    if deleted:
        subscription.plan = PlanType.FREE.value
        subscription.status = SubscriptionStatus.CANCELED.value
    else:
        plan = str(metadata.get("plan", "")).upper()
        if plan in PlanType.__members__:
            subscription.plan = plan
        status = _STRIPE_STATUS.get(stripe_subscription.get("status", ""), SubscriptionStatus.ACTIVE)
        subscription.status = status.value
        subscription.cancel_at_period_end = bool(stripe_subscription.get("cancel_at_period_end"))

    period_end = stripe_subscription.get("current_period_end")
    if period_end:
        subscription.current_period_end = datetime.fromtimestamp(int(period_end), tz=timezone.utc)

    await session.flush()
    logger.info("Subscription for %s now %s/%s", organization_id, subscription.plan, subscription.status)
    return True

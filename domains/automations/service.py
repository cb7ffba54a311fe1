"""Automation management: plan-limited create, update and toggle."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError
from domains.automations.models.schemas import (
    AutomationCreate,
    AutomationStatus,
    AutomationUpdate,
    format_action,
    format_trigger,
)
from domains.automations.repository import AutomationRepository
from domains.subscriptions.models.schemas import Resource
from domains.subscriptions.service import enforce_usage_limit

logger = logging.getLogger(__name__)


def with_labels(automation: dict) -> dict:
    return {
        **automation,
        "trigger_label": format_trigger(automation["trigger_type"]),
        "action_label": format_action(automation["action_type"]),
    }


async def create_automation(session: AsyncSession, organization_id: UUID, data: AutomationCreate) -> dict:
    """New automations start ACTIVE."""
    await enforce_usage_limit(session, organization_id, Resource.AUTOMATIONS)
    automation = await AutomationRepository(session).create(organization_id, {
        "name": data.name,
        "description": data.description,
        "trigger_type": data.trigger_type.value,
        "trigger_config": data.trigger_config,
        "action_type": data.action_type.value,
        "action_config": data.action_config,
        "status": AutomationStatus.ACTIVE.value,
    })
    logger.info("Automation %s (%s -> %s) created", automation["id"], data.trigger_type.value, data.action_type.value)
    return with_labels(automation)


async def update_automation(
    session: AsyncSession, organization_id: UUID, automation_id: UUID, data: AutomationUpdate
) -> dict:
    updates = {
        key: value.value if hasattr(value, "value") else value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None or key == "description"
    }
    automation = await AutomationRepository(session).update(automation_id, organization_id, updates)
    if automation is None:
        raise NotFoundError("Automation")
    return with_labels(automation)


async def toggle_automation(session: AsyncSession, organization_id: UUID, automation_id: UUID) -> dict:
    """ACTIVE <-> PAUSED."""
    repo = AutomationRepository(session)
    automation = await repo.get_obj(automation_id, organization_id)
    if automation is None:
        raise NotFoundError("Automation")
    new_status = (
        AutomationStatus.PAUSED if automation.status == AutomationStatus.ACTIVE.value
        else AutomationStatus.ACTIVE
    )
    await repo.update_obj(automation, {"status": new_status.value})
    return with_labels(automation.to_dict())

"""Automations API router: CRUD, toggle, stats and label catalogue."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_org
from core.database import get_session
from core.errors import NotFoundError
from domains.accounts.service import OrgSession
from domains.automations import service
from domains.automations.models.schemas import (
    ACTION_LABELS,
    TRIGGER_LABELS,
    AutomationCreate,
    AutomationStatus,
    AutomationTrigger,
    AutomationUpdate,
)
from domains.automations.repository import AutomationRepository, get_automation_repository
from patterns.repository import page_response

router = APIRouter()


@router.get("")
async def list_automations(
    status: Optional[AutomationStatus] = None,
    trigger_type: Optional[AutomationTrigger] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    repo: AutomationRepository = Depends(get_automation_repository),
):
    filters = {
        "status": status.value if status else None,
        "trigger_type": trigger_type.value if trigger_type else None,
    }
    items, total = await repo.list(org.organization_id, page=page, limit=limit, filters=filters)
    return page_response([service.with_labels(item) for item in items], page, limit, total)


@router.get("/stats")
async def automation_stats(
    org: OrgSession = Depends(require_org),
    repo: AutomationRepository = Depends(get_automation_repository),
):
    return await repo.stats(org.organization_id)


@router.get("/catalogue")
async def catalogue():
    """Trigger and action kinds with their display labels."""
    return {
        "triggers": [{"value": t.value, "label": label} for t, label in TRIGGER_LABELS.items()],
        "actions": [{"value": a.value, "label": label} for a, label in ACTION_LABELS.items()],
    }


@router.post("", status_code=201)
async def create_automation(
    request: AutomationCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_automation(session, org.organization_id, request)


@router.get("/{automation_id}")
async def get_automation(
    automation_id: UUID,
    org: OrgSession = Depends(require_org),
    repo: AutomationRepository = Depends(get_automation_repository),
):
    automation = await repo.get(automation_id, org.organization_id)
    if automation is None:
        raise NotFoundError("Automation")
    return service.with_labels(automation)


@router.patch("/{automation_id}")
async def update_automation(
    automation_id: UUID,
    request: AutomationUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_automation(session, org.organization_id, automation_id, request)


@router.post("/{automation_id}/toggle")
async def toggle_automation(
    automation_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.toggle_automation(session, org.organization_id, automation_id)


@router.delete("/{automation_id}", status_code=204)
async def delete_automation(
    automation_id: UUID,
    org: OrgSession = Depends(require_org),
    repo: AutomationRepository = Depends(get_automation_repository),
):
    if not await repo.delete(automation_id, org.organization_id):
        raise NotFoundError("Automation")

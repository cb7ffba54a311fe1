"""Campaigns API router.

Mounted under /api/campaigns. The ``/track/...`` endpoints are public: email
providers and tracking pixels call them without a session.
"""

import base64
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_integrations, require_org
from core.database import get_session
from core.integrations import Integrations
from domains.accounts.service import OrgSession
from domains.campaigns import service
from domains.campaigns.models.schemas import CampaignCreate, CampaignUpdate
from domains.campaigns.repository import CampaignRepository, get_campaign_repository
from patterns.repository import page_response
from patterns.workflow_states import CampaignStatus

router = APIRouter()

# 1x1 transparent GIF
_PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


# ============================================================================
# Campaigns
# ============================================================================

@router.get("")
async def list_campaigns(
    status: Optional[CampaignStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    repo: CampaignRepository = Depends(get_campaign_repository),
):
    items, total = await repo.list(
        org.organization_id, page=page, limit=limit, filters={"status": status.value if status else None}
    )
    return page_response(items, page, limit, total)


@router.post("", status_code=201)
async def create_campaign(
    request: CampaignCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_campaign(session, org.organization_id, request)


@router.get("/{campaign_id}")
async def get_campaign(
    campaign_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_campaign(session, org.organization_id, campaign_id)


@router.patch("/{campaign_id}")
async def update_campaign(
    campaign_id: UUID,
    request: CampaignUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_campaign(session, org.organization_id, campaign_id, request)


@router.delete("/{campaign_id}", status_code=204)
async def delete_campaign(
    campaign_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    await service.delete_campaign(session, org.organization_id, campaign_id)


@router.post("/{campaign_id}/send")
async def send_campaign(
    campaign_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    result = await service.send_campaign(session, org.organization_id, campaign_id, integrations)
    return {"success": True, **result}


# ============================================================================
# Tracking (public)
# ============================================================================

@router.post("/track/{recipient_id}/deliver")
async def track_delivery(recipient_id: UUID, session: AsyncSession = Depends(get_session)):
    return {"recorded": await service.track_event(session, recipient_id, "deliver")}


@router.get("/track/{recipient_id}/open")
async def track_open(recipient_id: UUID, session: AsyncSession = Depends(get_session)):
    await service.track_event(session, recipient_id, "open")
    return Response(content=_PIXEL, media_type="image/gif", headers={"Cache-Control": "no-store"})


@router.get("/track/{recipient_id}/click")
async def track_click(
    recipient_id: UUID,
    url: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    recorded = await service.track_event(session, recipient_id, "click")
    if url and url.startswith(("http://", "https://")):
        return RedirectResponse(url, status_code=302)
    return {"recorded": recorded}

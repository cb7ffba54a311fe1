"""Funnels API router.

``router`` is mounted under /api/funnels; ``public_router`` under /api/public
serves published funnels and accepts their form submissions.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_integrations, require_org
from core.database import get_session
from core.integrations import Integrations
from domains.accounts.service import OrgSession
from domains.funnels import service
from domains.funnels.models.schemas import FunnelCreate, FunnelSubmission, FunnelUpdate
from domains.funnels.repository import FunnelRepository, get_funnel_repository
from patterns.domain_config import get_business_config

router = APIRouter()
public_router = APIRouter()


# ============================================================================
# Funnels
# ============================================================================

@router.get("")
async def list_funnels(
    org: OrgSession = Depends(require_org),
    repo: FunnelRepository = Depends(get_funnel_repository),
):
    funnels, total = await repo.list(org.organization_id, page=1, limit=500)
    return {"data": funnels, "count": total}


@router.get("/templates")
async def list_templates():
    """Starter templates a funnel can be created from."""
    return {
        "data": [
            {
                "key": key,
                "name": template.name,
                "description": template.description,
                "steps": [{"name": name, "type": step_type} for name, step_type in template.steps],
            }
            for key, template in get_business_config().funnels.templates.items()
        ]
    }


@router.post("", status_code=201)
async def create_funnel(
    request: FunnelCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_funnel(session, org.organization_id, request)


@router.get("/{funnel_id}")
async def get_funnel(
    funnel_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return (await service.get_funnel_obj(session, org.organization_id, funnel_id)).to_dict()


@router.patch("/{funnel_id}")
async def update_funnel(
    funnel_id: UUID,
    request: FunnelUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_funnel(session, org.organization_id, funnel_id, request)


@router.post("/{funnel_id}/publish")
async def publish_funnel(
    funnel_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.set_published(session, org.organization_id, funnel_id, True)


@router.post("/{funnel_id}/unpublish")
async def unpublish_funnel(
    funnel_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.set_published(session, org.organization_id, funnel_id, False)


@router.delete("/{funnel_id}", status_code=204)
async def delete_funnel(
    funnel_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    await service.delete_funnel(session, org.organization_id, funnel_id)


# ============================================================================
# Public
# ============================================================================

@public_router.get("/{org_slug}/funnels/{slug}")
async def view_funnel(org_slug: str, slug: str, session: AsyncSession = Depends(get_session)):
    return await service.view_funnel(session, org_slug, slug)


@public_router.post("/{org_slug}/funnels/{slug}")
async def submit_funnel(
    org_slug: str,
    slug: str,
    request: FunnelSubmission,
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.submit_funnel(session, org_slug, slug, request, integrations)

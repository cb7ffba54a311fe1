"""Social API router: posts and AI generation."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_integrations, require_org
from core.database import get_session
from core.errors import NotFoundError
from core.integrations import Integrations
from domains.accounts.service import OrgSession
from domains.social import service
from domains.social.models.schemas import PostCreate, PostGenerate, PostStatus, PostUpdate, SocialPlatform
from domains.social.repository import SocialPostRepository, get_social_post_repository
from patterns.repository import page_response

router = APIRouter()


@router.get("/posts")
async def list_posts(
    platform: Optional[SocialPlatform] = None,
    status: Optional[PostStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    repo: SocialPostRepository = Depends(get_social_post_repository),
):
    filters = {
        "platform": platform.value if platform else None,
        "status": status.value if status else None,
    }
    items, total = await repo.list(org.organization_id, page=page, limit=limit, filters=filters)
    return page_response(items, page, limit, total)


@router.post("/posts", status_code=201)
async def create_post(
    request: PostCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_post(session, org.organization_id, request)


@router.get("/posts/{post_id}")
async def get_post(
    post_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return (await service.get_post_obj(session, org.organization_id, post_id)).to_dict()


@router.patch("/posts/{post_id}")
async def update_post(
    post_id: UUID,
    request: PostUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_post(session, org.organization_id, post_id, request)


@router.delete("/posts/{post_id}", status_code=204)
async def delete_post(
    post_id: UUID,
    org: OrgSession = Depends(require_org),
    repo: SocialPostRepository = Depends(get_social_post_repository),
):
    if not await repo.delete(post_id, org.organization_id):
        raise NotFoundError("Post")


@router.post("/posts/{post_id}/publish")
async def publish_post(
    post_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.mark_published(session, org.organization_id, post_id)


@router.post("/generate")
async def generate_post(
    request: PostGenerate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    result = await service.generate_content(session, org.organization_id, request, integrations)
    return {"success": True, **result}

"""Social posts: platform length limits, scheduling and AI drafts."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.agents.base_agent import generate_social_post
from core.errors import NotFoundError, ValidationError
from core.integrations import Integrations
from core.timeutils import ensure_utc, utcnow
from domains.social.models.db_models import SocialPost
from domains.social.models.schemas import PostCreate, PostGenerate, PostStatus, PostUpdate
from domains.social.repository import SocialPostRepository
from domains.subscriptions.models.schemas import Resource
from domains.subscriptions.service import enforce_usage_limit, increment_usage
from patterns.domain_config import get_business_config
from patterns.rules_engine import check_content_length

logger = logging.getLogger(__name__)


def _check_length(platform: str, content: str) -> None:
    result = check_content_length(platform, content, get_business_config().social.char_limits)
    if not result.passed:
        raise ValidationError(result.message)


async def get_post_obj(session: AsyncSession, organization_id: UUID, post_id: UUID) -> SocialPost:
    post = await SocialPostRepository(session).get_obj(post_id, organization_id)
    if post is None:
        raise NotFoundError("Post")
    return post


async def create_post(session: AsyncSession, organization_id: UUID, data: PostCreate) -> dict:
    """SCHEDULED when a time is given, otherwise DRAFT."""
    _check_length(data.platform.value, data.content)
    post = await SocialPostRepository(session).create_obj(organization_id, {
        "platform": data.platform.value,
        "content": data.content,
        "media_urls": data.media_urls,
        "status": (PostStatus.SCHEDULED if data.scheduled_at else PostStatus.DRAFT).value,
        "scheduled_at": ensure_utc(data.scheduled_at),
    })
    return post.to_dict()


async def update_post(session: AsyncSession, organization_id: UUID, post_id: UUID, data: PostUpdate) -> dict:
    post = await get_post_obj(session, organization_id, post_id)
    if post.status == PostStatus.PUBLISHED.value:
        raise ValidationError("Cannot edit a published post")

    updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    if "content" in updates:
        _check_length(post.platform, updates["content"])
    if "status" in updates:
        updates["status"] = updates["status"].value
    if "scheduled_at" in data.model_fields_set:
        updates["scheduled_at"] = ensure_utc(data.scheduled_at)
        if "status" not in updates and post.status in (PostStatus.DRAFT.value, PostStatus.SCHEDULED.value):
            updates["status"] = (PostStatus.SCHEDULED if data.scheduled_at else PostStatus.DRAFT).value

    await SocialPostRepository(session).update_obj(post, updates)
    return post.to_dict()


async def mark_published(session: AsyncSession, organization_id: UUID, post_id: UUID) -> dict:
    post = await get_post_obj(session, organization_id, post_id)
    if post.status == PostStatus.PUBLISHED.value:
        raise ValidationError("Post is already published")
    post.status = PostStatus.PUBLISHED.value
    post.published_at = utcnow()
    await session.flush()
    logger.info("Social post %s marked published on %s", post.id, post.platform)
    return post.to_dict()


async def generate_content(
    session: AsyncSession, organization_id: UUID, data: PostGenerate, integrations: Integrations
) -> dict:
    """Draft a post with the platform's system prompt. Consumes one AI credit."""
    await enforce_usage_limit(session, organization_id, Resource.AI_CREDITS)
    platform = data.platform.value if data.platform else None
    content = await generate_social_post(data.prompt, platform=platform, model=integrations.ai_model)
    await increment_usage(session, organization_id, Resource.AI_CREDITS)

    limit = get_business_config().social.char_limits.get(platform) if platform else None
    return {
        "content": content,
        "platform": platform,
        "characters": len(content),
        "limit": limit,
    }

"""Social post repository."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.social.models.db_models import SocialPost
from patterns.repository import BaseRepository


class SocialPostRepository(BaseRepository[SocialPost]):
    model = SocialPost
    default_order = (SocialPost.scheduled_at.desc(), SocialPost.created_at.desc())


def get_social_post_repository(session: AsyncSession = Depends(get_session)) -> SocialPostRepository:
    return SocialPostRepository(session)

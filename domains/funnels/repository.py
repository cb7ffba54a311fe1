"""Funnel repository."""

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.accounts.models.db_models import Organization
from domains.funnels.models.db_models import Funnel
from patterns.repository import BaseRepository


class FunnelRepository(BaseRepository[Funnel]):
    model = Funnel
    default_order = (Funnel.created_at.desc(),)

    async def published(self, org_slug: str, slug: str) -> Funnel | None:
        stmt = (
            select(Funnel)
            .join(Organization, Organization.id == Funnel.organization_id)
            .where(Organization.slug == org_slug, Funnel.slug == slug, Funnel.is_published.is_(True))
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()


def get_funnel_repository(session: AsyncSession = Depends(get_session)) -> FunnelRepository:
    return FunnelRepository(session)

"""Campaign repository. Recipients belong to a campaign, not directly to a tenant."""

from typing import Iterable
from uuid import UUID

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.campaigns.models.db_models import Campaign, CampaignRecipient
from domains.crm.models.db_models import Contact
from patterns.repository import BaseRepository


class CampaignRepository(BaseRepository[Campaign]):
    model = Campaign
    default_order = (Campaign.created_at.desc(),)

    async def add_recipients(self, campaign_id: UUID, contacts: Iterable[Contact]) -> int:
        rows = [
            CampaignRecipient(campaign_id=campaign_id, contact_id=contact.id, email=contact.email)
            for contact in contacts
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return len(rows)

    async def recipients(
        self, campaign_id: UUID, status: str | None = None, limit: int | None = None
    ) -> list[CampaignRecipient]:
        stmt = select(CampaignRecipient).where(CampaignRecipient.campaign_id == campaign_id)
        if status:
            stmt = stmt.where(CampaignRecipient.status == status)
        stmt = stmt.order_by(CampaignRecipient.created_at, CampaignRecipient.email)
        if limit:
            stmt = stmt.limit(limit)
        return list((await self.session.execute(stmt)).scalars().all())

    async def recipient_counts(self, campaign_id: UUID) -> dict[str, int]:
        stmt = (
            select(CampaignRecipient.status, func.count())
            .where(CampaignRecipient.campaign_id == campaign_id)
            .group_by(CampaignRecipient.status)
        )
        return {status: count for status, count in (await self.session.execute(stmt)).all()}

    async def get_recipient(self, recipient_id: UUID) -> CampaignRecipient | None:
        return await self.session.get(CampaignRecipient, recipient_id)


def get_campaign_repository(session: AsyncSession = Depends(get_session)) -> CampaignRepository:
    return CampaignRepository(session)

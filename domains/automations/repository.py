"""Automation repository."""

from uuid import UUID

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.automations.models.db_models import Automation
from patterns.repository import BaseRepository


class AutomationRepository(BaseRepository[Automation]):
    model = Automation
    default_order = (Automation.created_at.desc(),)

    async def stats(self, organization_id: UUID) -> dict:
        stmt = select(
            func.count(),
            func.coalesce(func.sum(Automation.executions), 0),
        ).where(Automation.organization_id == organization_id)
        total, executions = (await self.session.execute(stmt)).one()
        active = await self.count(organization_id, status="ACTIVE")
        return {"active": active, "total": total, "executions": int(executions)}


def get_automation_repository(session: AsyncSession = Depends(get_session)) -> AutomationRepository:
    return AutomationRepository(session)

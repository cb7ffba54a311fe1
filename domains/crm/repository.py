"""CRM repositories: async database access with tenant isolation.

Extends BaseRepository with contact search, tag links, pipeline/stage
lookups and deal aggregation.
"""

from typing import Any, Iterable
from uuid import UUID

from fastapi import Depends
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.crm.models.db_models import (
    Activity,
    Company,
    Contact,
    ContactTag,
    Deal,
    Pipeline,
    PipelineStage,
    Tag,
)
from patterns.repository import BaseRepository


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------

class ContactRepository(BaseRepository[Contact]):
    """Contacts plus their tag links."""

    model = Contact

    def _search_clause(self, query: str):
        pattern = f"%{query}%"
        return or_(
            Contact.first_name.ilike(pattern),
            Contact.last_name.ilike(pattern),
            Contact.email.ilike(pattern),
        )

    async def search(
        self,
        organization_id: UUID,
        query: str | None = None,
        status: str | None = None,
        company_id: UUID | None = None,
        tag_id: UUID | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Contact], int]:
        """Filter contacts; search matches first name, last name or email."""
        conditions = [Contact.organization_id == organization_id]
        if query:
            conditions.append(self._search_clause(query))
        if status:
            conditions.append(Contact.status == status)
        if company_id:
            conditions.append(Contact.company_id == company_id)
        if tag_id:
            conditions.append(
                Contact.id.in_(select(ContactTag.contact_id).where(ContactTag.tag_id == tag_id))
            )

        stmt = (
            select(Contact)
            .where(*conditions)
            .order_by(Contact.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Contact).where(*conditions)

        contacts = list((await self.session.execute(stmt)).scalars().all())
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return contacts, total

    async def all_for_export(
        self, organization_id: UUID, status: str | None = None, query: str | None = None
    ) -> list[tuple[Contact, str | None]]:
        """Contacts with their company name, newest first."""
        stmt = (
            select(Contact, Company.name)
            .outerjoin(Company, Company.id == Contact.company_id)
            .where(Contact.organization_id == organization_id)
            .order_by(Contact.created_at.desc())
        )
        if status:
            stmt = stmt.where(Contact.status == status)
        if query:
            stmt = stmt.where(self._search_clause(query))
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def find_by_email(self, organization_id: UUID, email: str) -> Contact | None:
        stmt = self._scoped(organization_id).where(func.lower(Contact.email) == email.lower())
        return (await self.session.execute(stmt)).scalars().first()

    async def with_email(
        self, organization_id: UUID, tag_ids: Iterable[UUID] | None = None
    ) -> list[Contact]:
        """Contacts that have an email, optionally carrying any of ``tag_ids``."""
        stmt = self._scoped(organization_id).where(
            Contact.email.is_not(None), Contact.email != ""
        )
        if tag_ids is not None:
            stmt = stmt.where(
                Contact.id.in_(
                    select(ContactTag.contact_id).where(ContactTag.tag_id.in_(list(tag_ids)))
                )
            )
        return list((await self.session.execute(stmt.order_by(Contact.created_at))).scalars().all())

    # -- Tags --

    async def tags_for(self, contact_ids: list[UUID]) -> dict[UUID, list[dict]]:
        if not contact_ids:
            return {}
        stmt = (
            select(ContactTag.contact_id, Tag)
            .join(Tag, Tag.id == ContactTag.tag_id)
            .where(ContactTag.contact_id.in_(contact_ids))
            .order_by(Tag.name)
        )
        tags: dict[UUID, list[dict]] = {cid: [] for cid in contact_ids}
        for contact_id, tag in (await self.session.execute(stmt)).all():
            tags[contact_id].append(tag.to_dict())
        return tags

    async def has_tag(self, contact_id: UUID, tag_id: UUID) -> bool:
        stmt = select(ContactTag).where(
            ContactTag.contact_id == contact_id, ContactTag.tag_id == tag_id
        )
        return (await self.session.execute(stmt)).first() is not None

    async def add_tag(self, contact_id: UUID, tag_id: UUID) -> bool:
        """Link a tag. Returns False when the link already existed."""
        if await self.has_tag(contact_id, tag_id):
            return False
        self.session.add(ContactTag(contact_id=contact_id, tag_id=tag_id))
        await self.session.flush()
        return True

    async def remove_tag(self, contact_id: UUID, tag_id: UUID) -> bool:
        result = await self.session.execute(
            delete(ContactTag).where(
                ContactTag.contact_id == contact_id, ContactTag.tag_id == tag_id
            )
        )
        return result.rowcount > 0

    async def set_tags(self, contact_id: UUID, tag_ids: list[UUID]) -> None:
        await self.session.execute(delete(ContactTag).where(ContactTag.contact_id == contact_id))
        for tag_id in dict.fromkeys(tag_ids):
            self.session.add(ContactTag(contact_id=contact_id, tag_id=tag_id))
        await self.session.flush()


# ---------------------------------------------------------------------------
# Companies & tags
# ---------------------------------------------------------------------------

class CompanyRepository(BaseRepository[Company]):
    model = Company
    default_order = (Company.name,)

    async def search(
        self, organization_id: UUID, query: str | None = None, page: int = 1, limit: int = 50
    ) -> tuple[list[dict], int]:
        conditions = [Company.organization_id == organization_id]
        if query:
            conditions.append(Company.name.ilike(f"%{query}%"))
        stmt = select(Company).where(*conditions).order_by(Company.name)
        stmt = stmt.offset((page - 1) * limit).limit(limit)
        count_stmt = select(func.count()).select_from(Company).where(*conditions)

        companies = [c.to_dict() for c in (await self.session.execute(stmt)).scalars().all()]
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return companies, total

    async def contact_count(self, company_id: UUID) -> int:
        stmt = select(func.count()).select_from(Contact).where(Contact.company_id == company_id)
        return (await self.session.execute(stmt)).scalar() or 0


class TagRepository(BaseRepository[Tag]):
    model = Tag
    default_order = (Tag.name,)

    async def all(self, organization_id: UUID) -> list[dict]:
        usage = (
            select(ContactTag.tag_id, func.count().label("contacts"))
            .group_by(ContactTag.tag_id)
            .subquery()
        )
        stmt = (
            select(Tag, func.coalesce(usage.c.contacts, 0))
            .outerjoin(usage, usage.c.tag_id == Tag.id)
            .where(Tag.organization_id == organization_id)
            .order_by(Tag.name)
        )
        return [
            {**tag.to_dict(), "contact_count": count}
            for tag, count in (await self.session.execute(stmt)).all()
        ]

    async def find_by_name(self, organization_id: UUID, name: str) -> Tag | None:
        stmt = self._scoped(organization_id).where(Tag.name == name)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def find_or_create(self, organization_id: UUID, name: str, color: str) -> Tag:
        tag = await self.find_by_name(organization_id, name)
        if tag is None:
            tag = await self.create_obj(organization_id, {"name": name, "color": color})
        return tag

    async def existing_ids(self, organization_id: UUID, tag_ids: Iterable[UUID]) -> set[UUID]:
        ids = list(tag_ids)
        if not ids:
            return set()
        stmt = select(Tag.id).where(Tag.organization_id == organization_id, Tag.id.in_(ids))
        return set((await self.session.execute(stmt)).scalars().all())


# ---------------------------------------------------------------------------
# Pipelines & deals
# ---------------------------------------------------------------------------

class PipelineRepository(BaseRepository[Pipeline]):
    model = Pipeline

    async def all(self, organization_id: UUID) -> list[Pipeline]:
        """Default pipeline first, then by creation time."""
        stmt = self._scoped(organization_id).order_by(
            Pipeline.is_default.desc(), Pipeline.created_at
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_default(self, organization_id: UUID) -> Pipeline | None:
        stmt = self._scoped(organization_id).where(Pipeline.is_default.is_(True))
        return (await self.session.execute(stmt)).scalars().first()

    async def stages(self, pipeline_ids: list[UUID]) -> dict[UUID, list[PipelineStage]]:
        stmt = (
            select(PipelineStage)
            .where(PipelineStage.pipeline_id.in_(pipeline_ids))
            .order_by(PipelineStage.order)
        )
        grouped: dict[UUID, list[PipelineStage]] = {pid: [] for pid in pipeline_ids}
        for stage in (await self.session.execute(stmt)).scalars().all():
            grouped[stage.pipeline_id].append(stage)
        return grouped

    async def get_stage(self, organization_id: UUID, stage_id: UUID) -> PipelineStage | None:
        stmt = select(PipelineStage).where(
            PipelineStage.id == stage_id, PipelineStage.organization_id == organization_id
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def add_stages(self, pipeline: Pipeline, stages: list[dict[str, Any]]) -> list[PipelineStage]:
        created = []
        for index, stage in enumerate(stages):
            row = PipelineStage(
                organization_id=pipeline.organization_id,
                pipeline_id=pipeline.id,
                order=index,
                **stage,
            )
            self.session.add(row)
            created.append(row)
        await self.session.flush()
        return created

    async def deal_count(self, pipeline_id: UUID) -> int:
        stmt = select(func.count()).select_from(Deal).where(Deal.pipeline_id == pipeline_id)
        return (await self.session.execute(stmt)).scalar() or 0


class DealRepository(BaseRepository[Deal]):
    model = Deal

    async def search(
        self,
        organization_id: UUID,
        query: str | None = None,
        pipeline_id: UUID | None = None,
        stage_id: UUID | None = None,
        status: str | None = None,
        contact_id: UUID | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[dict], int]:
        conditions = [Deal.organization_id == organization_id]
        if query:
            conditions.append(Deal.title.ilike(f"%{query}%"))
        if pipeline_id:
            conditions.append(Deal.pipeline_id == pipeline_id)
        if stage_id:
            conditions.append(Deal.stage_id == stage_id)
        if status:
            conditions.append(Deal.status == status)
        if contact_id:
            conditions.append(Deal.contact_id == contact_id)

        stmt = (
            select(Deal)
            .where(*conditions)
            .order_by(Deal.updated_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Deal).where(*conditions)

        deals = [d.to_dict() for d in (await self.session.execute(stmt)).scalars().all()]
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return deals, total

    async def open_by_stage(self, pipeline_id: UUID) -> dict[UUID, list[Deal]]:
        stmt = (
            select(Deal)
            .where(Deal.pipeline_id == pipeline_id, Deal.status == "OPEN")
            .order_by(Deal.updated_at.desc())
        )
        grouped: dict[UUID, list[Deal]] = {}
        for deal in (await self.session.execute(stmt)).scalars().all():
            grouped.setdefault(deal.stage_id, []).append(deal)
        return grouped

    async def stats(self, organization_id: UUID) -> dict:
        stmt = (
            select(Deal.status, func.count(), func.coalesce(func.sum(Deal.value), 0.0))
            .where(Deal.organization_id == organization_id)
            .group_by(Deal.status)
        )
        counts = {"OPEN": 0, "WON": 0, "LOST": 0}
        values = {"OPEN": 0.0, "WON": 0.0, "LOST": 0.0}
        for status, count, value in (await self.session.execute(stmt)).all():
            counts[status] = count
            values[status] = float(value or 0)

        total = sum(counts.values())
        return {
            "total": total,
            "open": counts["OPEN"],
            "won": counts["WON"],
            "lost": counts["LOST"],
            "total_value": sum(values.values()),
            "won_value": values["WON"],
            "conversion_rate": round(counts["WON"] / total * 100) if total else 0,
        }


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------

class ActivityRepository(BaseRepository[Activity]):
    model = Activity
    default_order = (Activity.created_at.desc(),)


# ---------------------------------------------------------------------------
# FastAPI dependency factories
# ---------------------------------------------------------------------------

def get_contact_repository(session: AsyncSession = Depends(get_session)) -> ContactRepository:
    return ContactRepository(session)


def get_company_repository(session: AsyncSession = Depends(get_session)) -> CompanyRepository:
    return CompanyRepository(session)


def get_tag_repository(session: AsyncSession = Depends(get_session)) -> TagRepository:
    return TagRepository(session)


def get_activity_repository(session: AsyncSession = Depends(get_session)) -> ActivityRepository:
    return ActivityRepository(session)

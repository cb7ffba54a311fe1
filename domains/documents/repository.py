"""Document and template repositories."""

from datetime import datetime
from uuid import UUID

from fastapi import Depends
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.documents.models.db_models import Document, DocumentTemplate
from patterns.repository import BaseRepository
from patterns.workflow_states import DocumentStatus


class DocumentRepository(BaseRepository[Document]):
    model = Document
    default_order = (Document.updated_at.desc(),)

    async def expire_overdue(self, organization_id: UUID, now: datetime) -> int:
        """Mark SENT/VIEWED documents past ``expires_at`` as EXPIRED."""
        stmt = (
            update(Document)
            .where(
                Document.organization_id == organization_id,
                Document.expires_at.is_not(None),
                Document.expires_at < now,
                Document.status.in_([DocumentStatus.SENT.value, DocumentStatus.VIEWED.value]),
            )
            .values(status=DocumentStatus.EXPIRED.value)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount


class TemplateRepository:
    """Templates visible to an organization: its own plus public ones."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _visible(self, organization_id: UUID):
        return select(DocumentTemplate).where(
            or_(DocumentTemplate.organization_id == organization_id, DocumentTemplate.is_public.is_(True))
        )

    async def all(self, organization_id: UUID, type: str | None = None) -> list[DocumentTemplate]:
        stmt = self._visible(organization_id)
        if type:
            stmt = stmt.where(DocumentTemplate.type == type)
        stmt = stmt.order_by(DocumentTemplate.updated_at.desc())
        return list((await self.session.execute(stmt)).scalars().all())

    async def get(self, template_id: UUID, organization_id: UUID) -> DocumentTemplate | None:
        stmt = self._visible(organization_id).where(DocumentTemplate.id == template_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def create(self, organization_id: UUID, data: dict) -> DocumentTemplate:
        template = DocumentTemplate(organization_id=organization_id, **data)
        self.session.add(template)
        await self.session.flush()
        return template


def get_document_repository(session: AsyncSession = Depends(get_session)) -> DocumentRepository:
    return DocumentRepository(session)


def get_template_repository(session: AsyncSession = Depends(get_session)) -> TemplateRepository:
    return TemplateRepository(session)

"""Documents: template-based creation, send/sign lifecycle, expiry and AI drafts."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.agents.base_agent import generate_document_content
from core.engine.template_engine import contact_merge_variables, render_merge_variables
from core.errors import NotFoundError, ValidationError
from core.integrations import Integrations
from core.timeutils import ensure_utc, utcnow
from domains.crm.models.db_models import Company, Contact
from domains.documents.models.db_models import Document
from domains.documents.models.schemas import DocumentCreate, DocumentGenerate, DocumentUpdate, TemplateCreate
from domains.documents.repository import DocumentRepository, TemplateRepository
from domains.subscriptions.models.schemas import Resource
from domains.subscriptions.service import enforce_usage_limit, increment_usage
from patterns.workflow_states import DocumentStatus, transition

logger = logging.getLogger(__name__)


def render_content(value: Any, variables: dict[str, Any]) -> Any:
    """Render merge variables in every string of a JSON document body."""
    if isinstance(value, str):
        return render_merge_variables(value, variables)
    if isinstance(value, dict):
        return {key: render_content(item, variables) for key, item in value.items()}
    if isinstance(value, list):
        return [render_content(item, variables) for item in value]
    return value


async def _contact(session: AsyncSession, organization_id: UUID, contact_id: UUID | None) -> Contact | None:
    if contact_id is None:
        return None
    contact = await session.get(Contact, contact_id)
    if contact is None or contact.organization_id != organization_id:
        raise NotFoundError("Contact")
    return contact


async def _check_company(session: AsyncSession, organization_id: UUID, company_id: UUID | None) -> None:
    if company_id is None:
        return
    company = await session.get(Company, company_id)
    if company is None or company.organization_id != organization_id:
        raise NotFoundError("Company")


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

async def create_template(session: AsyncSession, organization_id: UUID, data: TemplateCreate) -> dict:
    template = await TemplateRepository(session).create(organization_id, {
        **data.model_dump(),
        "type": data.type.value,
    })
    return template.to_dict()


async def get_template(session: AsyncSession, organization_id: UUID, template_id: UUID) -> dict:
    template = await TemplateRepository(session).get(template_id, organization_id)
    if template is None:
        raise NotFoundError("Template")
    return template.to_dict()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

async def list_documents(
    session: AsyncSession,
    organization_id: UUID,
    type: str | None = None,
    status: str | None = None,
    contact_id: UUID | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[dict], int]:
    repo = DocumentRepository(session)
    await repo.expire_overdue(organization_id, utcnow())
    return await repo.list(
        organization_id, page=page, limit=limit,
        filters={"type": type, "status": status, "contact_id": contact_id},
    )


async def get_document_obj(session: AsyncSession, organization_id: UUID, document_id: UUID) -> Document:
    repo = DocumentRepository(session)
    document = await repo.get_obj(document_id, organization_id)
    if document is None:
        raise NotFoundError("Document")
    expires_at = ensure_utc(document.expires_at)
    if (
        expires_at is not None
        and expires_at < utcnow()
        and document.status in (DocumentStatus.SENT.value, DocumentStatus.VIEWED.value)
    ):
        document.status = DocumentStatus.EXPIRED.value
        await session.flush()
        logger.info("Document %s expired", document.id)
    return document


async def get_document(session: AsyncSession, organization_id: UUID, document_id: UUID) -> dict:
    document = await get_document_obj(session, organization_id, document_id)
    result = document.to_dict()
    contact = await session.get(Contact, document.contact_id) if document.contact_id else None
    company = await session.get(Company, document.company_id) if document.company_id else None
    result["contact"] = {
        "id": str(contact.id),
        "first_name": contact.first_name,
        "last_name": contact.last_name,
        "email": contact.email,
    } if contact else None
    result["company"] = {"id": str(company.id), "name": company.name} if company else None
    return result


async def create_document(session: AsyncSession, organization_id: UUID, data: DocumentCreate) -> dict:
    """Create a document; without content, the template body is copied.

    String values in the body get the linked contact's merge variables.
    """
    await enforce_usage_limit(session, organization_id, Resource.DOCUMENTS)
    contact = await _contact(session, organization_id, data.contact_id)
    await _check_company(session, organization_id, data.company_id)

    content = data.content
    if data.template_id is not None:
        template = await TemplateRepository(session).get(data.template_id, organization_id)
        if template is None:
            raise NotFoundError("Template")
        if content is None:
            content = dict(template.content or {})

    if contact is not None and content:
        content = render_content(content, contact_merge_variables({
            "first_name": contact.first_name,
            "last_name": contact.last_name,
            "email": contact.email,
        }))

    document = await DocumentRepository(session).create_obj(organization_id, {
        "name": data.name,
        "type": data.type.value,
        "status": DocumentStatus.DRAFT.value,
        "template_id": data.template_id,
        "content": content or {},
        "contact_id": data.contact_id,
        "company_id": data.company_id,
        "expires_at": ensure_utc(data.expires_at),
    })
    logger.info("Document %s (%s) created", document.id, data.type.value)
    return document.to_dict()


async def update_document(
    session: AsyncSession, organization_id: UUID, document_id: UUID, data: DocumentUpdate
) -> dict:
    document = await get_document_obj(session, organization_id, document_id)
    if document.status in (DocumentStatus.SIGNED.value, DocumentStatus.EXPIRED.value):
        raise ValidationError(f"Cannot edit a {document.status.lower()} document")
    updates = data.model_dump(exclude_unset=True)
    if "contact_id" in updates:
        await _contact(session, organization_id, updates["contact_id"])
    if "company_id" in updates:
        await _check_company(session, organization_id, updates["company_id"])
    if "expires_at" in updates:
        updates["expires_at"] = ensure_utc(updates["expires_at"])
    if updates.get("name") is None:
        updates.pop("name", None)
    await DocumentRepository(session).update_obj(document, updates)
    return document.to_dict()


async def _move(session: AsyncSession, document: Document, to_state: DocumentStatus, stamp: str) -> dict:
    record = transition(DocumentStatus(document.status), to_state, actor="user")
    document.status = to_state.value
    setattr(document, stamp, record.timestamp)
    await session.flush()
    logger.info("Document %s %s -> %s", document.id, record.from_state, record.to_state)
    return document.to_dict()


async def send_document(session: AsyncSession, organization_id: UUID, document_id: UUID) -> dict:
    document = await get_document_obj(session, organization_id, document_id)
    return await _move(session, document, DocumentStatus.SENT, "sent_at")


async def mark_viewed(session: AsyncSession, organization_id: UUID, document_id: UUID) -> dict:
    document = await get_document_obj(session, organization_id, document_id)
    if document.status == DocumentStatus.VIEWED.value:
        return document.to_dict()
    return await _move(session, document, DocumentStatus.VIEWED, "viewed_at")


async def sign_document(session: AsyncSession, organization_id: UUID, document_id: UUID) -> dict:
    document = await get_document_obj(session, organization_id, document_id)
    return await _move(session, document, DocumentStatus.SIGNED, "signed_at")


# ---------------------------------------------------------------------------
# AI drafts
# ---------------------------------------------------------------------------

async def generate_content(
    session: AsyncSession, organization_id: UUID, data: DocumentGenerate, integrations: Integrations
) -> str:
    """Draft document text from a prompt. Consumes one AI credit on success."""
    await enforce_usage_limit(session, organization_id, Resource.AI_CREDITS)
    content = await generate_document_content(
        data.prompt,
        client_name=data.client_name,
        document_type=data.document_type.value if data.document_type else None,
        existing_content=data.existing_content,
        model=integrations.ai_model,
    )
    await increment_usage(session, organization_id, Resource.AI_CREDITS)
    return content

"""Documents API router: templates, documents, send/sign and AI drafts."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_integrations, require_org
from core.database import get_session
from core.errors import NotFoundError
from core.integrations import Integrations
from domains.accounts.service import OrgSession
from domains.documents import service
from domains.documents.models.schemas import (
    DocumentCreate,
    DocumentGenerate,
    DocumentType,
    DocumentUpdate,
    TemplateCreate,
)
from domains.documents.repository import (
    DocumentRepository,
    TemplateRepository,
    get_document_repository,
    get_template_repository,
)
from patterns.repository import page_response
from patterns.workflow_states import DocumentStatus

router = APIRouter()


# ============================================================================
# Templates
# ============================================================================

@router.get("/templates")
async def list_templates(
    type: Optional[DocumentType] = None,
    org: OrgSession = Depends(require_org),
    repo: TemplateRepository = Depends(get_template_repository),
):
    """Templates of the organization plus public ones."""
    templates = await repo.all(org.organization_id, type=type.value if type else None)
    return {"data": [t.to_dict() for t in templates], "count": len(templates)}


@router.post("/templates", status_code=201)
async def create_template(
    request: TemplateCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_template(session, org.organization_id, request)


@router.get("/templates/{template_id}")
async def get_template(
    template_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_template(session, org.organization_id, template_id)


# ============================================================================
# AI
# ============================================================================

@router.post("/generate")
async def generate_document(
    request: DocumentGenerate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    content = await service.generate_content(session, org.organization_id, request, integrations)
    return {"success": True, "content": content}


# ============================================================================
# Documents
# ============================================================================

@router.get("")
async def list_documents(
    type: Optional[DocumentType] = None,
    status: Optional[DocumentStatus] = None,
    contact_id: Optional[UUID] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    items, total = await service.list_documents(
        session,
        org.organization_id,
        type=type.value if type else None,
        status=status.value if status else None,
        contact_id=contact_id,
        page=page,
        limit=limit,
    )
    return page_response(items, page, limit, total)


@router.post("", status_code=201)
async def create_document(
    request: DocumentCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_document(session, org.organization_id, request)


@router.get("/{document_id}")
async def get_document(
    document_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_document(session, org.organization_id, document_id)


@router.patch("/{document_id}")
async def update_document(
    document_id: UUID,
    request: DocumentUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_document(session, org.organization_id, document_id, request)


@router.delete("/{document_id}", status_code=204)
async def delete_document(
    document_id: UUID,
    org: OrgSession = Depends(require_org),
    repo: DocumentRepository = Depends(get_document_repository),
):
    if not await repo.delete(document_id, org.organization_id):
        raise NotFoundError("Document")


@router.post("/{document_id}/send")
async def send_document(
    document_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.send_document(session, org.organization_id, document_id)


@router.post("/{document_id}/view")
async def mark_viewed(
    document_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.mark_viewed(session, org.organization_id, document_id)


@router.post("/{document_id}/sign")
async def sign_document(
    document_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.sign_document(session, org.organization_id, document_id)

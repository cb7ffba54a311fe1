"""CRM API router: contacts, companies, tags, pipelines, deals, activities.

Plain CRUD goes straight to the repositories; anything with plan limits,
cross-entity checks or automation dispatch goes through domains.crm.service.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_integrations, require_org
from core.database import get_session
from core.errors import NotFoundError
from core.integrations import Integrations
from domains.accounts.service import OrgSession
from domains.crm import import_export, service
from domains.crm.models.schemas import (
    ActivityCreate,
    ActivityType,
    ActivityUpdate,
    CompanyCreate,
    CompanyUpdate,
    ContactCreate,
    ContactImportRequest,
    ContactStatus,
    ContactUpdate,
    DealCreate,
    DealMove,
    DealStatus,
    DealStatusUpdate,
    DealUpdate,
    PipelineCreate,
    TagCreate,
    TagUpdate,
)
from domains.crm.repository import (
    ActivityRepository,
    CompanyRepository,
    ContactRepository,
    DealRepository,
    TagRepository,
    get_activity_repository,
    get_company_repository,
    get_contact_repository,
    get_tag_repository,
)
from patterns.repository import page_response

router = APIRouter()


# ============================================================================
# Contacts
# ============================================================================

@router.get("/contacts")
async def list_contacts(
    query: Optional[str] = None,
    status: Optional[ContactStatus] = None,
    company_id: Optional[UUID] = None,
    tag_id: Optional[UUID] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    """Search and list contacts with filtering and pagination."""
    contacts, total = await service.list_contacts(
        session,
        org.organization_id,
        query=query,
        status=status.value if status else None,
        company_id=company_id,
        tag_id=tag_id,
        page=page,
        limit=limit,
    )
    return page_response(contacts, page, limit, total)


@router.get("/contacts/count")
async def count_contacts(
    org: OrgSession = Depends(require_org),
    repo: ContactRepository = Depends(get_contact_repository),
):
    return {"count": await repo.count(org.organization_id)}


@router.get("/contacts/export")
async def export_contacts(
    status: Optional[ContactStatus] = None,
    query: Optional[str] = None,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    """Download contacts as CSV."""
    csv_text = await import_export.export_contacts_csv(
        session, org.organization_id, status=status.value if status else None, query=query
    )
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="contacts.csv"'},
    )


@router.post("/contacts/import")
async def import_contacts(
    request: ContactImportRequest,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await import_export.import_contacts_csv(
        session, org.organization_id, request.csv, integrations, owner_id=org.user_id
    )


@router.get("/contacts/{contact_id}")
async def get_contact(
    contact_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_contact(session, org.organization_id, contact_id)


@router.post("/contacts", status_code=201)
async def create_contact(
    request: ContactCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.create_contact(
        session, org.organization_id, request, integrations, owner_id=org.user_id
    )


@router.patch("/contacts/{contact_id}")
async def update_contact(
    contact_id: UUID,
    request: ContactUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_contact(session, org.organization_id, contact_id, request)


@router.delete("/contacts/{contact_id}", status_code=204)
async def delete_contact(
    contact_id: UUID,
    org: OrgSession = Depends(require_org),
    repo: ContactRepository = Depends(get_contact_repository),
):
    if not await repo.delete(contact_id, org.organization_id):
        raise NotFoundError("Contact")


@router.post("/contacts/{contact_id}/tags/{tag_id}")
async def add_contact_tag(
    contact_id: UUID,
    tag_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.add_contact_tag(session, org.organization_id, contact_id, tag_id, integrations)


@router.delete("/contacts/{contact_id}/tags/{tag_id}")
async def remove_contact_tag(
    contact_id: UUID,
    tag_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.remove_contact_tag(session, org.organization_id, contact_id, tag_id)


# ============================================================================
# Companies
# ============================================================================

@router.get("/companies")
async def list_companies(
    query: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    repo: CompanyRepository = Depends(get_company_repository),
):
    companies, total = await repo.search(org.organization_id, query=query, page=page, limit=limit)
    return page_response(companies, page, limit, total)


@router.get("/companies/{company_id}")
async def get_company(
    company_id: UUID,
    org: OrgSession = Depends(require_org),
    repo: CompanyRepository = Depends(get_company_repository),
):
    company = await repo.get(company_id, org.organization_id)
    if not company:
        raise NotFoundError("Company")
    company["contact_count"] = await repo.contact_count(company_id)
    return company


@router.post("/companies", status_code=201)
async def create_company(
    request: CompanyCreate,
    org: OrgSession = Depends(require_org),
    repo: CompanyRepository = Depends(get_company_repository),
):
    return await repo.create(org.organization_id, request.model_dump())


@router.patch("/companies/{company_id}")
async def update_company(
    company_id: UUID,
    request: CompanyUpdate,
    org: OrgSession = Depends(require_org),
    repo: CompanyRepository = Depends(get_company_repository),
):
    company = await repo.update(company_id, org.organization_id, request.model_dump(exclude_unset=True))
    if not company:
        raise NotFoundError("Company")
    return company


@router.delete("/companies/{company_id}", status_code=204)
async def delete_company(
    company_id: UUID,
    org: OrgSession = Depends(require_org),
    repo: CompanyRepository = Depends(get_company_repository),
):
    if not await repo.delete(company_id, org.organization_id):
        raise NotFoundError("Company")


# ============================================================================
# Tags
# ============================================================================

@router.get("/tags")
async def list_tags(
    org: OrgSession = Depends(require_org),
    repo: TagRepository = Depends(get_tag_repository),
):
    tags = await repo.all(org.organization_id)
    return {"data": tags, "count": len(tags)}


@router.post("/tags", status_code=201)
async def create_tag(
    request: TagCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_tag(session, org.organization_id, request)


@router.patch("/tags/{tag_id}")
async def update_tag(
    tag_id: UUID,
    request: TagUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_tag(session, org.organization_id, tag_id, request)


@router.delete("/tags/{tag_id}", status_code=204)
async def delete_tag(
    tag_id: UUID,
    org: OrgSession = Depends(require_org),
    repo: TagRepository = Depends(get_tag_repository),
):
    if not await repo.delete(tag_id, org.organization_id):
        raise NotFoundError("Tag")


# ============================================================================
# Pipelines
# ============================================================================

@router.get("/pipelines")
async def list_pipelines(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    pipelines = await service.list_pipelines(session, org.organization_id)
    return {"data": pipelines, "count": len(pipelines)}


@router.post("/pipelines", status_code=201)
async def create_pipeline(
    request: PipelineCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_pipeline(session, org.organization_id, request)


@router.get("/pipelines/{pipeline_id}")
async def get_pipeline(
    pipeline_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_pipeline(session, org.organization_id, pipeline_id)


@router.delete("/pipelines/{pipeline_id}", status_code=204)
async def delete_pipeline(
    pipeline_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    await service.delete_pipeline(session, org.organization_id, pipeline_id)


# ============================================================================
# Deals
# ============================================================================

@router.get("/deals")
async def list_deals(
    query: Optional[str] = None,
    pipeline_id: Optional[UUID] = None,
    stage_id: Optional[UUID] = None,
    status: Optional[DealStatus] = None,
    contact_id: Optional[UUID] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    deals, total = await DealRepository(session).search(
        org.organization_id,
        query=query,
        pipeline_id=pipeline_id,
        stage_id=stage_id,
        status=status.value if status else None,
        contact_id=contact_id,
        page=page,
        limit=limit,
    )
    return page_response(deals, page, limit, total)


@router.get("/deals/board")
async def deal_board(
    pipeline_id: Optional[UUID] = None,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    """Open deals grouped by stage with per-stage totals."""
    return await service.deal_board(session, org.organization_id, pipeline_id)


@router.get("/deals/stats")
async def deal_stats(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await DealRepository(session).stats(org.organization_id)


@router.post("/deals", status_code=201)
async def create_deal(
    request: DealCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.create_deal(session, org.organization_id, request, integrations, owner_id=org.user_id)


@router.get("/deals/{deal_id}")
async def get_deal(
    deal_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    deal = await service.get_deal(session, org.organization_id, deal_id)
    return deal.to_dict()


@router.patch("/deals/{deal_id}")
async def update_deal(
    deal_id: UUID,
    request: DealUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_deal(session, org.organization_id, deal_id, request)


@router.post("/deals/{deal_id}/move")
async def move_deal(
    deal_id: UUID,
    request: DealMove,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.move_deal(session, org.organization_id, deal_id, request.stage_id, integrations)


@router.post("/deals/{deal_id}/status")
async def set_deal_status(
    deal_id: UUID,
    request: DealStatusUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.set_deal_status(session, org.organization_id, deal_id, request.status, integrations)


@router.delete("/deals/{deal_id}", status_code=204)
async def delete_deal(
    deal_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    if not await DealRepository(session).delete(deal_id, org.organization_id):
        raise NotFoundError("Deal")


# ============================================================================
# Activities
# ============================================================================

@router.get("/activities")
async def list_activities(
    type: Optional[ActivityType] = None,
    contact_id: Optional[UUID] = None,
    deal_id: Optional[UUID] = None,
    completed: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    repo: ActivityRepository = Depends(get_activity_repository),
):
    activities, total = await repo.list(
        org.organization_id,
        page=page,
        limit=limit,
        filters={
            "type": type.value if type else None,
            "contact_id": contact_id,
            "deal_id": deal_id,
            "completed": completed,
        },
    )
    return page_response(activities, page, limit, total)


@router.get("/activities/recent")
async def recent_activities(
    limit: int = Query(10, ge=1, le=50),
    org: OrgSession = Depends(require_org),
    repo: ActivityRepository = Depends(get_activity_repository),
):
    activities, _ = await repo.list(org.organization_id, page=1, limit=limit)
    return {"data": activities, "count": len(activities)}


@router.post("/activities", status_code=201)
async def create_activity(
    request: ActivityCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_activity(session, org.organization_id, request, user_id=org.user_id)


@router.patch("/activities/{activity_id}")
async def update_activity(
    activity_id: UUID,
    request: ActivityUpdate,
    org: OrgSession = Depends(require_org),
    repo: ActivityRepository = Depends(get_activity_repository),
):
    updates = request.model_dump(exclude_unset=True)
    if isinstance(updates.get("type"), ActivityType):
        updates["type"] = updates["type"].value
    activity = await repo.update(activity_id, org.organization_id, updates)
    if not activity:
        raise NotFoundError("Activity")
    return activity


@router.delete("/activities/{activity_id}", status_code=204)
async def delete_activity(
    activity_id: UUID,
    org: OrgSession = Depends(require_org),
    repo: ActivityRepository = Depends(get_activity_repository),
):
    if not await repo.delete(activity_id, org.organization_id):
        raise NotFoundError("Activity")

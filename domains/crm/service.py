"""CRM business logic.

Routes call these functions for anything beyond plain CRUD: plan limits,
cross-entity validation (a stage must belong to its pipeline, a tag to the
organization) and automation dispatch on contact and deal events.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError, NotFoundError, ValidationError
from core.integrations import Integrations
from core.timeutils import utcnow
from domains.automations.executor import trigger_automations
from domains.automations.models.schemas import AutomationTrigger
from domains.crm.models.db_models import Contact, Deal, Pipeline
from domains.crm.models.schemas import (
    ActivityCreate,
    ContactCreate,
    ContactStatus,
    ContactUpdate,
    DealCreate,
    DealStatus,
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
    PipelineRepository,
    TagRepository,
)
from domains.subscriptions.models.schemas import Resource
from domains.subscriptions.service import enforce_usage_limit
from patterns.domain_config import get_business_config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event context helpers
# ---------------------------------------------------------------------------

def contact_event_context(contact: Contact) -> dict[str, Any]:
    """Context bag describing a contact, as seen by automation conditions and actions."""
    return {
        "contact_id": str(contact.id),
        "email": contact.email,
        "first_name": contact.first_name,
        "last_name": contact.last_name,
        "name": contact.full_name,
        "phone": contact.phone,
        "status": contact.status,
        "source": contact.source,
    }


async def _deal_event_context(session: AsyncSession, deal: Deal, **extra: Any) -> dict[str, Any]:
    context: dict[str, Any] = {}
    if deal.contact_id:
        contact = await ContactRepository(session).get_obj(deal.contact_id, deal.organization_id)
        if contact:
            context.update(contact_event_context(contact))
    context.update({
        "deal_id": str(deal.id),
        "title": deal.title,
        "value": deal.value,
        "currency": deal.currency,
        "status": deal.status,
        "pipeline_id": str(deal.pipeline_id),
        "stage_id": str(deal.stage_id),
    })
    context.update(extra)
    return context


def split_name(full_name: str | None) -> tuple[str, str | None]:
    """'Ada King Lovelace' -> ('Ada', 'King Lovelace'); empty -> ('Unknown', None)."""
    parts = (full_name or "").split()
    if not parts:
        return get_business_config().crm.unknown_first_name, None
    return parts[0], " ".join(parts[1:]) or None


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------

async def _check_company(session: AsyncSession, organization_id: UUID, company_id: UUID | None) -> None:
    if company_id and not await CompanyRepository(session).get_obj(company_id, organization_id):
        raise NotFoundError("Company")


async def _check_tags(session: AsyncSession, organization_id: UUID, tag_ids: list[UUID]) -> None:
    found = await TagRepository(session).existing_ids(organization_id, tag_ids)
    if len(found) != len(set(tag_ids)):
        raise NotFoundError("Tag")


async def list_contacts(
    session: AsyncSession,
    organization_id: UUID,
    query: str | None = None,
    status: str | None = None,
    company_id: UUID | None = None,
    tag_id: UUID | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[dict], int]:
    repo = ContactRepository(session)
    contacts, total = await repo.search(
        organization_id, query=query, status=status, company_id=company_id,
        tag_id=tag_id, page=page, limit=limit,
    )
    tags = await repo.tags_for([c.id for c in contacts])
    return [{**c.to_dict(), "tags": tags.get(c.id, [])} for c in contacts], total


async def get_contact(session: AsyncSession, organization_id: UUID, contact_id: UUID) -> dict:
    """Contact with its tags and company."""
    repo = ContactRepository(session)
    contact = await repo.get_obj(contact_id, organization_id)
    if not contact:
        raise NotFoundError("Contact")

    result = contact.to_dict()
    result["tags"] = (await repo.tags_for([contact.id]))[contact.id]
    result["company"] = None
    if contact.company_id:
        result["company"] = await CompanyRepository(session).get(contact.company_id, organization_id)
    return result


async def create_contact(
    session: AsyncSession,
    organization_id: UUID,
    data: ContactCreate,
    integrations: Integrations,
    owner_id: UUID | None = None,
) -> dict:
    """Create a contact (plan-limited) and dispatch CONTACT_CREATED."""
    await enforce_usage_limit(session, organization_id, Resource.CONTACTS)

    repo = ContactRepository(session)
    values = data.model_dump(exclude={"tag_ids"})
    values["status"] = data.status.value
    if data.email:
        values["email"] = data.email.lower()
        if await repo.find_by_email(organization_id, values["email"]):
            raise ConflictError("A contact with this email already exists")
    await _check_company(session, organization_id, data.company_id)
    await _check_tags(session, organization_id, data.tag_ids)

    contact = await repo.create_obj(organization_id, {**values, "owner_id": owner_id})
    if data.tag_ids:
        await repo.set_tags(contact.id, data.tag_ids)
    logger.info("Contact %s created in %s", contact.id, organization_id)

    await trigger_automations(
        session, organization_id, AutomationTrigger.CONTACT_CREATED,
        contact_event_context(contact), integrations,
    )
    return await get_contact(session, organization_id, contact.id)


async def update_contact(
    session: AsyncSession, organization_id: UUID, contact_id: UUID, data: ContactUpdate
) -> dict:
    repo = ContactRepository(session)
    contact = await repo.get_obj(contact_id, organization_id)
    if not contact:
        raise NotFoundError("Contact")

    updates = data.model_dump(exclude_unset=True, exclude={"tag_ids"})
    if updates.get("email"):
        updates["email"] = updates["email"].lower()
        existing = await repo.find_by_email(organization_id, updates["email"])
        if existing and existing.id != contact.id:
            raise ConflictError("A contact with this email already exists")
    if isinstance(updates.get("status"), ContactStatus):
        updates["status"] = updates["status"].value
    await _check_company(session, organization_id, updates.get("company_id"))

    await repo.update_obj(contact, updates)
    if data.tag_ids is not None:
        await _check_tags(session, organization_id, data.tag_ids)
        await repo.set_tags(contact.id, data.tag_ids)
    return await get_contact(session, organization_id, contact.id)


async def add_contact_tag(
    session: AsyncSession,
    organization_id: UUID,
    contact_id: UUID,
    tag_id: UUID,
    integrations: Integrations,
) -> dict:
    """Link a tag; a new link dispatches CONTACT_TAG_ADDED with the tag name."""
    repo = ContactRepository(session)
    contact = await repo.get_obj(contact_id, organization_id)
    if not contact:
        raise NotFoundError("Contact")
    tag = await TagRepository(session).get_obj(tag_id, organization_id)
    if not tag:
        raise NotFoundError("Tag")

    if await repo.add_tag(contact.id, tag.id):
        context = {**contact_event_context(contact), "tag_id": str(tag.id), "tag_name": tag.name}
        await trigger_automations(
            session, organization_id, AutomationTrigger.CONTACT_TAG_ADDED, context, integrations
        )
    return await get_contact(session, organization_id, contact.id)


async def remove_contact_tag(
    session: AsyncSession, organization_id: UUID, contact_id: UUID, tag_id: UUID
) -> dict:
    repo = ContactRepository(session)
    if not await repo.get_obj(contact_id, organization_id):
        raise NotFoundError("Contact")
    await repo.remove_tag(contact_id, tag_id)
    return await get_contact(session, organization_id, contact_id)


async def upsert_public_contact(
    session: AsyncSession,
    organization_id: UUID,
    email: str,
    name: str | None = None,
    phone: str | None = None,
    source: str | None = None,
    notes: str | None = None,
) -> tuple[Contact, bool]:
    """Find-or-create a contact from a public form or booking page.

    Returns ``(contact, created)``. An existing contact keeps its phone when
    one is already set and gets new notes appended below a separator.
    """
    email = email.strip().lower()
    first_name, last_name = split_name(name)
    repo = ContactRepository(session)
    contact = await repo.find_by_email(organization_id, email)

    if contact is None:
        contact = await repo.create_obj(organization_id, {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "phone": phone,
            "status": ContactStatus.LEAD.value,
            "source": source or get_business_config().crm.public_contact_source,
            "notes": notes,
        })
        logger.info("Public contact %s created in %s", contact.id, organization_id)
        return contact, True

    updates: dict[str, Any] = {}
    if name:
        updates["first_name"] = first_name
        updates["last_name"] = last_name
    if phone and not contact.phone:
        updates["phone"] = phone
    if source:
        updates["source"] = source
    if notes:
        updates["notes"] = f"{contact.notes}\n\n---\n{notes}" if contact.notes else notes
    await repo.update_obj(contact, updates)
    return contact, False


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

async def create_tag(session: AsyncSession, organization_id: UUID, data: TagCreate) -> dict:
    repo = TagRepository(session)
    if await repo.find_by_name(organization_id, data.name):
        raise ConflictError("A tag with this name already exists")
    color = data.color or get_business_config().crm.default_tag_color
    return await repo.create(organization_id, {"name": data.name, "color": color})


async def update_tag(session: AsyncSession, organization_id: UUID, tag_id: UUID, data: TagUpdate) -> dict:
    repo = TagRepository(session)
    tag = await repo.get_obj(tag_id, organization_id)
    if not tag:
        raise NotFoundError("Tag")
    if data.name and data.name != tag.name and await repo.find_by_name(organization_id, data.name):
        raise ConflictError("A tag with this name already exists")
    await repo.update_obj(tag, data.model_dump(exclude_unset=True, exclude_none=True))
    return tag.to_dict()


async def create_default_tags(session: AsyncSession, organization_id: UUID) -> int:
    repo = TagRepository(session)
    created = 0
    for name, color in get_business_config().crm.default_tags:
        if not await repo.find_by_name(organization_id, name):
            await repo.create_obj(organization_id, {"name": name, "color": color})
            created += 1
    return created


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------

async def _with_stages(repo: PipelineRepository, pipelines: list[Pipeline]) -> list[dict]:
    stages = await repo.stages([p.id for p in pipelines])
    return [
        {**p.to_dict(), "stages": [s.to_dict() for s in stages.get(p.id, [])]}
        for p in pipelines
    ]


async def list_pipelines(session: AsyncSession, organization_id: UUID) -> list[dict]:
    repo = PipelineRepository(session)
    return await _with_stages(repo, await repo.all(organization_id))


async def get_pipeline(session: AsyncSession, organization_id: UUID, pipeline_id: UUID) -> dict:
    repo = PipelineRepository(session)
    pipeline = await repo.get_obj(pipeline_id, organization_id)
    if not pipeline:
        raise NotFoundError("Pipeline")
    return (await _with_stages(repo, [pipeline]))[0]


async def _clear_default(session: AsyncSession, organization_id: UUID) -> None:
    await session.execute(
        update(Pipeline)
        .where(Pipeline.organization_id == organization_id)
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )


async def create_pipeline(session: AsyncSession, organization_id: UUID, data: PipelineCreate) -> dict:
    """Create a pipeline with ordered stages. Only one default per organization."""
    repo = PipelineRepository(session)
    is_default = data.is_default or await repo.count(organization_id) == 0
    if is_default:
        await _clear_default(session, organization_id)

    pipeline = await repo.create_obj(organization_id, {"name": data.name, "is_default": is_default})
    await repo.add_stages(pipeline, [stage.model_dump() for stage in data.stages])
    return await get_pipeline(session, organization_id, pipeline.id)


async def ensure_default_pipeline(session: AsyncSession, organization_id: UUID) -> Pipeline:
    """Return the default pipeline, seeding the standard sales stages when missing."""
    repo = PipelineRepository(session)
    pipeline = await repo.get_default(organization_id)
    if pipeline:
        return pipeline

    crm = get_business_config().crm
    pipeline = await repo.create_obj(organization_id, {"name": crm.default_pipeline_name, "is_default": True})
    await repo.add_stages(pipeline, [
        {"name": s.name, "color": s.color, "probability": s.probability} for s in crm.default_stages
    ])
    return pipeline


async def delete_pipeline(session: AsyncSession, organization_id: UUID, pipeline_id: UUID) -> None:
    repo = PipelineRepository(session)
    pipeline = await repo.get_obj(pipeline_id, organization_id)
    if not pipeline:
        raise NotFoundError("Pipeline")
    if await repo.deal_count(pipeline.id):
        raise ValidationError("Cannot delete pipeline with existing deals")
    await session.delete(pipeline)
    await session.flush()


# ---------------------------------------------------------------------------
# Deals
# ---------------------------------------------------------------------------

async def _resolve_stage(
    session: AsyncSession, organization_id: UUID, pipeline_id: UUID | None, stage_id: UUID | None
):
    repo = PipelineRepository(session)
    if pipeline_id:
        pipeline = await repo.get_obj(pipeline_id, organization_id)
        if not pipeline:
            raise NotFoundError("Pipeline")
    else:
        pipeline = await ensure_default_pipeline(session, organization_id)

    stages = (await repo.stages([pipeline.id]))[pipeline.id]
    if stage_id:
        stage = next((s for s in stages if s.id == stage_id), None)
        if stage is None:
            raise ValidationError("Stage does not belong to this pipeline")
    elif stages:
        stage = stages[0]
    else:
        raise ValidationError("Pipeline has no stages")
    return pipeline, stage


async def create_deal(
    session: AsyncSession,
    organization_id: UUID,
    data: DealCreate,
    integrations: Integrations,
    owner_id: UUID | None = None,
) -> dict:
    await enforce_usage_limit(session, organization_id, Resource.DEALS)
    pipeline, stage = await _resolve_stage(session, organization_id, data.pipeline_id, data.stage_id)
    if data.contact_id and not await ContactRepository(session).get_obj(data.contact_id, organization_id):
        raise NotFoundError("Contact")
    await _check_company(session, organization_id, data.company_id)

    values = data.model_dump(exclude={"pipeline_id", "stage_id", "probability"})
    deal = await DealRepository(session).create_obj(organization_id, {
        **values,
        "pipeline_id": pipeline.id,
        "stage_id": stage.id,
        "probability": data.probability if data.probability is not None else stage.probability,
        "owner_id": owner_id,
    })
    context = await _deal_event_context(session, deal, stage_name=stage.name)
    await trigger_automations(session, organization_id, AutomationTrigger.DEAL_CREATED, context, integrations)
    return deal.to_dict()


async def get_deal(session: AsyncSession, organization_id: UUID, deal_id: UUID) -> Deal:
    deal = await DealRepository(session).get_obj(deal_id, organization_id)
    if not deal:
        raise NotFoundError("Deal")
    return deal


async def update_deal(session: AsyncSession, organization_id: UUID, deal_id: UUID, data: DealUpdate) -> dict:
    deal = await get_deal(session, organization_id, deal_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("contact_id") and not await ContactRepository(session).get_obj(updates["contact_id"], organization_id):
        raise NotFoundError("Contact")
    await _check_company(session, organization_id, updates.get("company_id"))
    await DealRepository(session).update_obj(deal, updates)
    return deal.to_dict()


async def move_deal(
    session: AsyncSession,
    organization_id: UUID,
    deal_id: UUID,
    stage_id: UUID,
    integrations: Integrations,
) -> dict:
    """Move a deal to another stage of its pipeline; dispatches DEAL_STAGE_CHANGED."""
    deal = await get_deal(session, organization_id, deal_id)
    repo = PipelineRepository(session)
    new_stage = await repo.get_stage(organization_id, stage_id)
    if new_stage is None or new_stage.pipeline_id != deal.pipeline_id:
        raise ValidationError("Stage does not belong to this pipeline")
    if new_stage.id == deal.stage_id:
        return deal.to_dict()

    old_stage = await repo.get_stage(organization_id, deal.stage_id)
    await DealRepository(session).update_obj(deal, {"stage_id": new_stage.id, "probability": new_stage.probability})

    context = await _deal_event_context(
        session, deal,
        old_stage_id=str(old_stage.id) if old_stage else None,
        old_stage_name=old_stage.name if old_stage else None,
        stage_name=new_stage.name,
    )
    await trigger_automations(session, organization_id, AutomationTrigger.DEAL_STAGE_CHANGED, context, integrations)
    return deal.to_dict()


async def set_deal_status(
    session: AsyncSession,
    organization_id: UUID,
    deal_id: UUID,
    status: DealStatus,
    integrations: Integrations,
) -> dict:
    """WON/LOST stamp the close date and dispatch DEAL_WON / DEAL_LOST; OPEN reopens."""
    deal = await get_deal(session, organization_id, deal_id)
    status = DealStatus(status)
    if status.value == deal.status:
        return deal.to_dict()

    closed = status is not DealStatus.OPEN
    await DealRepository(session).update_obj(deal, {
        "status": status.value,
        "actual_close_date": utcnow() if closed else None,
    })

    if closed:
        trigger = AutomationTrigger.DEAL_WON if status is DealStatus.WON else AutomationTrigger.DEAL_LOST
        context = await _deal_event_context(session, deal)
        await trigger_automations(session, organization_id, trigger, context, integrations)
    return deal.to_dict()


async def deal_board(session: AsyncSession, organization_id: UUID, pipeline_id: UUID | None = None) -> dict:
    """Open deals grouped by stage with total value per stage."""
    repo = PipelineRepository(session)
    if pipeline_id:
        pipeline = await repo.get_obj(pipeline_id, organization_id)
        if not pipeline:
            raise NotFoundError("Pipeline")
    else:
        pipeline = await ensure_default_pipeline(session, organization_id)

    stages = (await repo.stages([pipeline.id]))[pipeline.id]
    deals = await DealRepository(session).open_by_stage(pipeline.id)
    columns = []
    for stage in stages:
        stage_deals = deals.get(stage.id, [])
        columns.append({
            **stage.to_dict(),
            "deals": [d.to_dict() for d in stage_deals],
            "total_value": sum(d.value or 0 for d in stage_deals),
        })
    return {"pipeline": pipeline.to_dict(), "stages": columns}


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------

async def create_activity(
    session: AsyncSession, organization_id: UUID, data: ActivityCreate, user_id: UUID | None = None
) -> dict:
    if data.contact_id and not await ContactRepository(session).get_obj(data.contact_id, organization_id):
        raise NotFoundError("Contact")
    if data.deal_id and not await DealRepository(session).get_obj(data.deal_id, organization_id):
        raise NotFoundError("Deal")
    values = data.model_dump()
    values["type"] = data.type.value
    return await ActivityRepository(session).create(organization_id, {**values, "user_id": user_id})

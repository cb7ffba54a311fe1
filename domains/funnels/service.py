"""Funnels: CRUD, template seeding, publishing and public form submissions."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError
from core.integrations import Integrations
from core.slugs import unique_slug
from domains.automations.executor import trigger_automations
from domains.automations.models.schemas import AutomationTrigger
from domains.crm.service import contact_event_context, upsert_public_contact
from domains.funnels.models.db_models import Funnel
from domains.funnels.models.schemas import FunnelCreate, FunnelStep, FunnelSubmission, FunnelUpdate
from domains.funnels.repository import FunnelRepository
from patterns.domain_config import get_business_config

logger = logging.getLogger(__name__)


def _steps(steps: list[FunnelStep]) -> list[dict[str, Any]]:
    return [
        {"name": step.name, "type": step.type.value, "order": index, "content": step.content}
        for index, step in enumerate(steps)
    ]


def template_steps(template_key: str) -> list[dict[str, Any]]:
    template = get_business_config().funnels.templates[template_key]
    return [
        {"name": name, "type": step_type, "order": index, "content": {}}
        for index, (name, step_type) in enumerate(template.steps)
    ]


async def _slug(session: AsyncSession, organization_id: UUID, name: str) -> str:
    return await unique_slug(
        session, Funnel.slug, name, Funnel.organization_id == organization_id, fallback="funnel"
    )


async def get_funnel_obj(session: AsyncSession, organization_id: UUID, funnel_id: UUID) -> Funnel:
    funnel = await FunnelRepository(session).get_obj(funnel_id, organization_id)
    if funnel is None:
        raise NotFoundError("Funnel")
    return funnel


async def create_funnel(session: AsyncSession, organization_id: UUID, data: FunnelCreate) -> dict:
    """Create an unpublished funnel.

    Explicit steps win; otherwise a template's steps are copied. The template
    also supplies the description when none is given.
    """
    config = get_business_config().funnels
    description = data.description
    steps: list[dict[str, Any]] = []
    if data.steps is not None:
        steps = _steps(data.steps)
    elif data.template is not None:
        steps = template_steps(data.template.value)
    if data.template is not None and description is None:
        description = config.templates[data.template.value].description

    funnel = await FunnelRepository(session).create_obj(organization_id, {
        "name": data.name,
        "slug": await _slug(session, organization_id, data.name),
        "description": description,
        "template": data.template.value if data.template else None,
        "steps": steps,
        "color": data.color or config.default_color,
        "is_published": False,
    })
    logger.info("Funnel %s (%s) created in %s", funnel.id, funnel.slug, organization_id)
    return funnel.to_dict()


async def update_funnel(session: AsyncSession, organization_id: UUID, funnel_id: UUID, data: FunnelUpdate) -> dict:
    """Update a funnel. Renaming picks a fresh unique slug."""
    funnel = await get_funnel_obj(session, organization_id, funnel_id)
    updates = data.model_dump(exclude_unset=True, exclude={"steps"})
    if updates.get("name") is None:
        updates.pop("name", None)
    elif updates["name"] != funnel.name:
        updates["slug"] = await _slug(session, organization_id, updates["name"])
    if data.steps is not None:
        updates["steps"] = _steps(data.steps)
    await FunnelRepository(session).update_obj(funnel, updates)
    return funnel.to_dict()


async def set_published(session: AsyncSession, organization_id: UUID, funnel_id: UUID, published: bool) -> dict:
    funnel = await get_funnel_obj(session, organization_id, funnel_id)
    funnel.is_published = published
    await session.flush()
    logger.info("Funnel %s %s", funnel.id, "published" if published else "unpublished")
    return funnel.to_dict()


async def delete_funnel(session: AsyncSession, organization_id: UUID, funnel_id: UUID) -> None:
    if not await FunnelRepository(session).delete(funnel_id, organization_id):
        raise NotFoundError("Funnel")


# ---------------------------------------------------------------------------
# Public pages
# ---------------------------------------------------------------------------

async def _published(session: AsyncSession, org_slug: str, slug: str) -> Funnel:
    funnel = await FunnelRepository(session).published(org_slug, slug)
    if funnel is None:
        raise NotFoundError("Funnel")
    return funnel


async def _bump(session: AsyncSession, funnel: Funnel, column: str) -> None:
    await session.execute(
        update(Funnel).where(Funnel.id == funnel.id).values({column: getattr(Funnel, column) + 1})
    )
    await session.refresh(funnel)


async def view_funnel(session: AsyncSession, org_slug: str, slug: str) -> dict:
    """Public funnel page. Counts a view."""
    funnel = await _published(session, org_slug, slug)
    await _bump(session, funnel, "views")
    return funnel.public_dict()


async def submit_funnel(
    session: AsyncSession, org_slug: str, slug: str, data: FunnelSubmission, integrations: Integrations
) -> dict:
    """Capture a form submission from a published funnel.

    The contact is upserted with the funnel name as its source. New contacts
    fire CONTACT_CREATED; every submission fires FORM_SUBMITTED.
    """
    funnel = await _published(session, org_slug, slug)
    contact, created = await upsert_public_contact(
        session,
        funnel.organization_id,
        email=data.email,
        name=data.name,
        phone=data.phone,
        source=funnel.name,
        notes=data.message,
    )
    await _bump(session, funnel, "conversions")

    context = contact_event_context(contact)
    if created:
        await trigger_automations(
            session, funnel.organization_id, AutomationTrigger.CONTACT_CREATED, context, integrations
        )
    await trigger_automations(
        session,
        funnel.organization_id,
        AutomationTrigger.FORM_SUBMITTED,
        {
            **context,
            "funnel_id": str(funnel.id),
            "funnel_name": funnel.name,
            "form_data": {**data.fields, "email": data.email, "name": data.name, "phone": data.phone},
        },
        integrations,
    )
    logger.info("Funnel %s submission from contact %s (new=%s)", funnel.slug, contact.id, created)
    return {"success": True, "contact_id": str(contact.id), "created": created}

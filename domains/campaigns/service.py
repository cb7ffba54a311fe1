"""Email campaigns: recipient snapshots, sequential sending and engagement tracking.

Sending walks the PENDING recipients one by one with a single outbound call
each. A failed delivery marks that recipient FAILED and the loop moves on;
there is no batching, rate limiting or retry.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.email.sender import EmailMessage
from core.engine.template_engine import contact_merge_variables, render_merge_variables, strip_html
from core.errors import NotFoundError, ValidationError
from core.integrations import Integrations
from core.timeutils import ensure_utc, utcnow
from domains.campaigns.models.db_models import Campaign, CampaignRecipient
from domains.campaigns.models.schemas import CampaignCreate, CampaignUpdate, RecipientStatus, RecipientType
from domains.campaigns.repository import CampaignRepository
from domains.crm.models.db_models import Contact
from domains.crm.repository import ContactRepository, TagRepository
from patterns.workflow_states import CampaignStatus, transition

logger = logging.getLogger(__name__)

_EDITABLE = (CampaignStatus.DRAFT, CampaignStatus.SCHEDULED)


async def get_campaign_obj(session: AsyncSession, organization_id: UUID, campaign_id: UUID) -> Campaign:
    campaign = await CampaignRepository(session).get_obj(campaign_id, organization_id)
    if campaign is None:
        raise NotFoundError("Campaign")
    return campaign


async def get_campaign(session: AsyncSession, organization_id: UUID, campaign_id: UUID) -> dict:
    repo = CampaignRepository(session)
    campaign = await get_campaign_obj(session, organization_id, campaign_id)
    recipients = await repo.recipients(campaign.id)
    return {
        **campaign.to_dict(),
        "recipients": [r.to_dict() for r in recipients],
        "recipient_counts": await repo.recipient_counts(campaign.id),
    }


async def create_campaign(session: AsyncSession, organization_id: UUID, data: CampaignCreate) -> dict:
    """Create a campaign and snapshot its recipients.

    ALL_CONTACTS takes every contact with an email; SEGMENT takes contacts
    carrying any of ``segment_ids`` (tag ids). Later contact changes do not
    alter the snapshot.
    """
    tag_ids = None
    if data.recipient_type is RecipientType.SEGMENT:
        known = await TagRepository(session).existing_ids(organization_id, data.segment_ids)
        if len(known) != len(set(data.segment_ids)):
            raise ValidationError("One or more segment tags were not found")
        tag_ids = data.segment_ids

    contacts = await ContactRepository(session).with_email(organization_id, tag_ids=tag_ids)
    status = CampaignStatus.SCHEDULED if data.scheduled_at else CampaignStatus.DRAFT

    repo = CampaignRepository(session)
    campaign = await repo.create_obj(organization_id, {
        "name": data.name,
        "subject": data.subject,
        "content": data.content,
        "status": status.value,
        "recipient_type": data.recipient_type.value,
        "segment_ids": [str(tag_id) for tag_id in data.segment_ids],
        "scheduled_at": ensure_utc(data.scheduled_at),
        "total_recipients": len(contacts),
    })
    await repo.add_recipients(campaign.id, contacts)
    logger.info("Campaign %s created with %d recipient(s)", campaign.id, len(contacts))
    return campaign.to_dict()


async def update_campaign(
    session: AsyncSession, organization_id: UUID, campaign_id: UUID, data: CampaignUpdate
) -> dict:
    campaign = await get_campaign_obj(session, organization_id, campaign_id)
    updates = data.model_dump(exclude_unset=True, exclude={"status"})
    current = CampaignStatus(campaign.status)

    content_fields = {k: v for k, v in updates.items() if v is not None}
    if content_fields and current not in _EDITABLE:
        raise ValidationError(f"Cannot edit a {current.value.lower()} campaign")
    if "scheduled_at" in content_fields:
        content_fields["scheduled_at"] = ensure_utc(content_fields["scheduled_at"])

    if data.status is not None and data.status is not current:
        if data.status is CampaignStatus.SENDING:
            raise ValidationError("Use the send endpoint to send a campaign")
        transition(current, data.status, actor="user")
        content_fields["status"] = data.status.value

    await CampaignRepository(session).update_obj(campaign, content_fields)
    return campaign.to_dict()


async def delete_campaign(session: AsyncSession, organization_id: UUID, campaign_id: UUID) -> None:
    campaign = await get_campaign_obj(session, organization_id, campaign_id)
    if campaign.status == CampaignStatus.SENDING.value:
        raise ValidationError("Cannot delete a campaign while it is sending")
    await session.delete(campaign)
    await session.flush()


# ---------------------------------------------------------------------------
# Sending
# ---------------------------------------------------------------------------

async def _deliver(
    session: AsyncSession,
    campaign: Campaign,
    recipient: CampaignRecipient,
    integrations: Integrations,
) -> bool:
    contact = await session.get(Contact, recipient.contact_id) if recipient.contact_id else None
    variables = contact_merge_variables({
        "first_name": contact.first_name if contact else None,
        "last_name": contact.last_name if contact else None,
        "email": (contact.email if contact else None) or recipient.email,
    })
    html = render_merge_variables(campaign.content, variables)
    result = await integrations.mailer.send(EmailMessage(
        to=recipient.email,
        subject=render_merge_variables(campaign.subject, variables),
        html=html,
        text=strip_html(html),
    ))
    if result.success:
        recipient.status = RecipientStatus.SENT.value
        recipient.sent_at = utcnow()
        recipient.error = None
    else:
        recipient.status = RecipientStatus.FAILED.value
        recipient.error = result.error
        logger.warning("Campaign %s: failed to send to %s: %s", campaign.id, recipient.email, result.error)
    await session.flush()
    return result.success


async def send_campaign(
    session: AsyncSession, organization_id: UUID, campaign_id: UUID, integrations: Integrations
) -> dict:
    """Send to every PENDING recipient. Returns ``{sent, failed}``."""
    campaign = await get_campaign_obj(session, organization_id, campaign_id)
    transition(CampaignStatus(campaign.status), CampaignStatus.SENDING, actor="user")
    campaign.status = CampaignStatus.SENDING.value
    await session.flush()

    sent = failed = 0
    for recipient in await CampaignRepository(session).recipients(campaign.id, status=RecipientStatus.PENDING.value):
        if await _deliver(session, campaign, recipient, integrations):
            sent += 1
        else:
            failed += 1

    transition(CampaignStatus.SENDING, CampaignStatus.SENT)
    campaign.status = CampaignStatus.SENT.value
    campaign.sent_at = utcnow()
    campaign.sent_count += sent
    campaign.failed_count += failed
    await session.flush()
    logger.info("Campaign %s sent: %d sent, %d failed", campaign.id, sent, failed)
    return {"sent": sent, "failed": failed}


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------

# event -> (recipient timestamp column, campaign counter, recipient status)
_TRACKING = {
    "deliver": ("delivered_at", "delivered_count", RecipientStatus.DELIVERED),
    "open": ("opened_at", "opened_count", RecipientStatus.OPENED),
    "click": ("clicked_at", "clicked_count", RecipientStatus.CLICKED),
}
_PROGRESS = [
    RecipientStatus.PENDING,
    RecipientStatus.SENT,
    RecipientStatus.DELIVERED,
    RecipientStatus.OPENED,
    RecipientStatus.CLICKED,
]


async def track_event(session: AsyncSession, recipient_id: UUID, event: str) -> bool:
    """Record a delivery, open or click. Each event counts once per recipient.

    Returns True when the event was new.
    """
    if event not in _TRACKING:
        raise ValidationError(f"Unknown tracking event: {event}")
    recipient = await CampaignRepository(session).get_recipient(recipient_id)
    if recipient is None:
        raise NotFoundError("Recipient")

    column, counter, status = _TRACKING[event]
    if getattr(recipient, column) is not None:
        return False

    setattr(recipient, column, utcnow())
    current = RecipientStatus(recipient.status)
    if current is not RecipientStatus.FAILED and _PROGRESS.index(status) > _PROGRESS.index(current):
        recipient.status = status.value

    campaign = await session.get(Campaign, recipient.campaign_id)
    setattr(campaign, counter, getattr(campaign, counter) + 1)
    await session.flush()
    return True

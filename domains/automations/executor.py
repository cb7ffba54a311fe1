"""
Automation executor: runs matching automations for a domain event.

Dispatch flow:
1. Load ACTIVE automations of the organization with the event's trigger.
2. Reserve an idempotency key per (automation, event id); a key that is
   already reserved means this event was delivered before and the run is
   skipped. Every call without an explicit ``event_id`` is a new event.
3. Evaluate trigger conditions against the context; a failed condition
   skips the automation without counting a run.
4. Execute the single configured action inside a SAVEPOINT. Success and
   failure both count a run and stamp ``last_run_at``; failure rolls back the
   action's own writes and stores ``last_error``.

Runs are sequential and independent. A failing action is logged and never
blocks its siblings. There are no retries. Each run is traced as an
``automation.run`` span.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from uuid import UUID, uuid4

from dateutil.relativedelta import relativedelta
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.email.sender import EmailMessage
from core.engine.template_engine import contact_merge_variables, render_merge_variables, strip_html
from core.integrations import Integrations
from core.resilience.idempotency import IdempotencyStore, generate_idempotency_key
from core.timeutils import isoformat, utcnow
from domains.accounts.models.schemas import NotificationType
from domains.accounts.notifications import notify_members
from domains.automations.models.db_models import Automation
from domains.automations.models.schemas import AutomationAction, AutomationStatus, AutomationTrigger
from domains.crm.models.db_models import Activity, Contact
from domains.crm.models.schemas import ActivityType, ContactStatus
from domains.crm.repository import ContactRepository, TagRepository
from patterns.domain_config import get_business_config
from patterns.rules_engine import check_trigger_conditions

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_store = IdempotencyStore(default_ttl_seconds=get_business_config().automations.idempotency_ttl_seconds)


def get_idempotency_store() -> IdempotencyStore:
    return _store


class ActionError(Exception):
    """An action could not run with the given context or configuration."""


@dataclass
class AutomationRun:
    automation_id: str
    status: str  # success | failed | skipped | duplicate
    detail: Any = None
    error: str | None = None


@dataclass
class ActionContext:
    session: AsyncSession
    automation: Automation
    trigger: str
    context: dict[str, Any]
    integrations: Integrations

    @property
    def config(self) -> dict[str, Any]:
        return self.automation.action_config or {}

    @property
    def organization_id(self) -> UUID:
        return self.automation.organization_id


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def merge_variables(context: dict[str, Any]) -> dict[str, Any]:
    """Variables available to action templates: flat context keys plus Contact.* names."""
    variables = {key: value for key, value in context.items() if not isinstance(value, (dict, list))}
    variables.update(contact_merge_variables(context))
    return variables


def _uuid(value: Any) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


async def _context_contact(action: ActionContext, required: bool) -> Contact | None:
    contact_id = _uuid(action.context.get("contact_id"))
    if contact_id is None:
        if required:
            raise ActionError("No contact in context")
        return None
    contact = await ContactRepository(action.session).get_obj(contact_id, action.organization_id)
    if contact is None and required:
        raise ActionError("Contact not found")
    return contact


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

async def send_email_action(action: ActionContext) -> Any:
    email = action.context.get("email")
    if not email:
        raise ActionError("No email address in context")

    defaults = get_business_config().automations
    variables = merge_variables(action.context)
    subject = render_merge_variables(action.config.get("subject") or defaults.default_email_subject, variables)
    body = render_merge_variables(action.config.get("body") or defaults.default_email_body, variables)

    result = await action.integrations.mailer.send(
        EmailMessage(to=email, subject=subject, html=body, text=strip_html(body))
    )
    if not result.success:
        raise ActionError(result.error or "Failed to send email")
    return {"to": email}


async def add_tag_action(action: ActionContext) -> Any:
    contact = await _context_contact(action, required=True)
    tags = TagRepository(action.session)
    defaults = get_business_config().automations

    tag = None
    tag_id = _uuid(action.config.get("tag_id"))
    if tag_id:
        tag = await tags.get_obj(tag_id, action.organization_id)
    if tag is None:
        tag = await tags.find_or_create(
            action.organization_id,
            action.config.get("tag_name") or defaults.default_tag_name,
            action.config.get("color") or defaults.default_tag_color,
        )

    linked = await ContactRepository(action.session).add_tag(contact.id, tag.id)
    return {"tag": tag.name, "linked": linked}


async def remove_tag_action(action: ActionContext) -> Any:
    contact = await _context_contact(action, required=False)
    if contact is None:
        return None

    tags = TagRepository(action.session)
    tag = None
    tag_id = _uuid(action.config.get("tag_id"))
    if tag_id:
        tag = await tags.get_obj(tag_id, action.organization_id)
    elif action.config.get("tag_name"):
        tag = await tags.find_by_name(action.organization_id, action.config["tag_name"])
    if tag is None:
        return None

    removed = await ContactRepository(action.session).remove_tag(contact.id, tag.id)
    return {"tag": tag.name, "removed": removed}


async def update_contact_status_action(action: ActionContext) -> Any:
    status = action.config.get("status")
    contact = await _context_contact(action, required=False)
    if contact is None or not status:
        return None
    try:
        status = ContactStatus(status).value
    except ValueError:
        raise ActionError(f"Invalid contact status: {status}")

    contact.status = status
    await action.session.flush()
    return {"status": status}


async def create_task_action(action: ActionContext) -> Any:
    contact = await _context_contact(action, required=False)
    variables = merge_variables(action.context)
    due_in_days = action.config.get("due_in_days")

    task = Activity(
        organization_id=action.organization_id,
        type=ActivityType.TASK.value,
        title=render_merge_variables(action.config.get("title") or "Follow up", variables),
        description=render_merge_variables(action.config.get("description") or "", variables) or None,
        contact_id=contact.id if contact else None,
        deal_id=_uuid(action.context.get("deal_id")),
        due_date=utcnow() + relativedelta(days=int(due_in_days)) if due_in_days else None,
    )
    action.session.add(task)
    await action.session.flush()
    return {"activity_id": str(task.id)}


async def send_notification_action(action: ActionContext) -> Any:
    variables = merge_variables(action.context)
    title = render_merge_variables(
        action.config.get("title") or action.automation.name, variables
    )
    message = render_merge_variables(action.config.get("message") or "", variables)
    sent = await notify_members(
        action.session,
        action.organization_id,
        title,
        message,
        type=NotificationType.AUTOMATION,
        link=action.config.get("link"),
        min_role=action.config.get("role"),
    )
    return {"notified": sent}


async def webhook_action(action: ActionContext) -> Any:
    url = action.config.get("url")
    if not url:
        raise ActionError("Webhook URL not configured")

    payload = {"trigger": action.trigger, "data": action.context, "timestamp": isoformat(utcnow())}
    delivery = await action.integrations.webhooks.post(
        url, event=action.trigger, payload=payload, secret=action.config.get("secret")
    )
    if not delivery.success:
        raise ActionError(f"Webhook failed: {delivery.error}")
    return {"status_code": delivery.status_code}


async def delay_action(action: ActionContext) -> Any:
    logger.info(
        "Automation %s: DELAY requires a job queue; skipping", action.automation.id
    )
    return None


ACTIONS: dict[AutomationAction, Callable[[ActionContext], Awaitable[Any]]] = {
    AutomationAction.SEND_EMAIL: send_email_action,
    AutomationAction.ADD_TAG: add_tag_action,
    AutomationAction.REMOVE_TAG: remove_tag_action,
    AutomationAction.UPDATE_CONTACT_STATUS: update_contact_status_action,
    AutomationAction.CREATE_TASK: create_task_action,
    AutomationAction.SEND_NOTIFICATION: send_notification_action,
    AutomationAction.WEBHOOK: webhook_action,
    AutomationAction.DELAY: delay_action,
}


async def execute_action(action: ActionContext) -> Any:
    try:
        handler = ACTIONS[AutomationAction(action.automation.action_type)]
    except ValueError:
        raise ActionError(f"Unknown action type: {action.automation.action_type}")
    return await handler(action)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

async def trigger_automations(
    session: AsyncSession,
    organization_id: UUID,
    trigger: AutomationTrigger | str,
    context: dict[str, Any],
    integrations: Integrations,
    event_id: str | None = None,
    store: IdempotencyStore | None = None,
) -> list[AutomationRun]:
    """Run every ACTIVE automation of the organization listening for ``trigger``.

    ``event_id`` identifies the triggering event. Pass the upstream id (for
    example a Stripe event id) when the same event may be delivered again;
    omit it for events originating here, which are always new.
    """
    trigger = AutomationTrigger(trigger).value
    event_id = event_id or str(uuid4())
    store = store or _store
    store.cleanup_expired()

    stmt = select(Automation).where(
        Automation.organization_id == organization_id,
        Automation.trigger_type == trigger,
        Automation.status == AutomationStatus.ACTIVE.value,
    ).order_by(Automation.created_at)
    automations = (await session.execute(stmt)).scalars().all()

    runs = []
    for automation in automations:
        attributes = {
            "automation.id": str(automation.id),
            "automation.trigger": trigger,
            "automation.action": automation.action_type,
            "automation.event_id": event_id,
        }
        with tracer.start_as_current_span("automation.run", attributes=attributes) as span:
            run = await _run_one(session, automation, trigger, context, event_id, integrations, store)
            span.set_attribute("automation.status", run.status)
        runs.append(run)

    if runs:
        logger.info(
            "Trigger %s (event %s) for %s: %s",
            trigger, event_id, organization_id, ", ".join(f"{r.automation_id}={r.status}" for r in runs),
        )
    return runs


async def _run_one(
    session: AsyncSession,
    automation: Automation,
    trigger: str,
    context: dict[str, Any],
    event_id: str,
    integrations: Integrations,
    store: IdempotencyStore,
) -> AutomationRun:
    automation_id = str(automation.id)
    action_type = automation.action_type
    key = generate_idempotency_key("automation.run", automation_id=automation_id, event_id=event_id)
    if store.reserve(key, str(automation.organization_id), "automation.run") is None:
        logger.debug("Automation %s already handled event %s", automation_id, event_id)
        return AutomationRun(automation_id, "duplicate")

    action = ActionContext(session, automation, trigger, context, integrations)
    try:
        conditions = check_trigger_conditions(automation.trigger_config, context)
        if not conditions.all_passed:
            store.complete(key, "skipped")
            return AutomationRun(automation_id, "skipped", detail=[r.message for r in conditions.failed])
        # Writes made by the action are released or rolled back as a unit.
        async with session.begin_nested():
            detail = await execute_action(action)
    except Exception as exc:
        logger.exception("Automation %s (%s) failed", automation_id, action_type)
        error = str(exc) or exc.__class__.__name__
        automation.executions = (automation.executions or 0) + 1
        automation.last_run_at = utcnow()
        automation.last_error = error
        await session.flush()
        store.fail(key, error)
        return AutomationRun(automation_id, "failed", error=error)

    automation.executions = (automation.executions or 0) + 1
    automation.last_run_at = utcnow()
    automation.last_error = None
    await session.flush()
    store.complete(key, detail)
    return AutomationRun(automation_id, "success", detail=detail)

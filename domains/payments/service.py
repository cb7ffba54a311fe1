"""Payments: products, invoices and Stripe webhook event handling."""

import logging
from typing import Any
from uuid import UUID

from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from core.email.sender import EmailMessage
from core.engine.template_engine import TemplateEngine
from core.errors import NotFoundError, ValidationError
from core.integrations import Integrations
from core.timeutils import ensure_utc, utcnow
from domains.accounts.models.db_models import Organization
from domains.automations.executor import trigger_automations
from domains.automations.models.schemas import AutomationTrigger
from domains.crm.models.db_models import Contact
from domains.crm.service import contact_event_context
from domains.payments.models.db_models import Invoice, Product
from domains.payments.models.schemas import InvoiceCreate, InvoiceStatus, ProductCreate
from domains.payments.repository import InvoiceRepository, ProductRepository
from domains.subscriptions.service import apply_stripe_subscription
from patterns.domain_config import get_business_config

logger = logging.getLogger(__name__)

_CURRENCY_SYMBOLS = {"usd": "$", "eur": "€", "gbp": "£"}


def currency_symbol(currency: str) -> str:
    return _CURRENCY_SYMBOLS.get(currency.lower(), f"{currency.upper()} ")


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

async def create_product(session: AsyncSession, organization_id: UUID, data: ProductCreate) -> dict:
    product = await ProductRepository(session).create_obj(organization_id, {
        "name": data.name,
        "description": data.description,
        "price": data.price,
        "currency": data.currency.lower(),
        "is_recurring": data.recurring_interval is not None,
        "recurring_interval": data.recurring_interval.value if data.recurring_interval else None,
    })
    return product.to_dict()


async def delete_product(session: AsyncSession, organization_id: UUID, product_id: UUID) -> None:
    if not await ProductRepository(session).delete(product_id, organization_id):
        raise NotFoundError("Product")


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------

async def next_invoice_number(session: AsyncSession, organization_id: UUID) -> str:
    """``INV-0001``, ``INV-0002``... per organization, after the highest number issued."""
    prefix = get_business_config().invoice_prefix
    highest = 0
    for number in await InvoiceRepository(session).numbers(organization_id, prefix):
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:04d}"


async def get_invoice_obj(session: AsyncSession, organization_id: UUID, invoice_id: UUID) -> Invoice:
    invoice = await InvoiceRepository(session).get_obj(invoice_id, organization_id)
    if invoice is None:
        raise NotFoundError("Invoice")
    return invoice


async def _get_contact(session: AsyncSession, organization_id: UUID, contact_id: UUID) -> Contact:
    contact = await session.get(Contact, contact_id)
    if contact is None or contact.organization_id != organization_id:
        raise NotFoundError("Contact")
    return contact


async def get_invoice(session: AsyncSession, organization_id: UUID, invoice_id: UUID) -> dict:
    invoice = await get_invoice_obj(session, organization_id, invoice_id)
    result = invoice.to_dict()
    contact = await session.get(Contact, invoice.contact_id) if invoice.contact_id else None
    result["contact"] = {
        "id": str(contact.id),
        "first_name": contact.first_name,
        "last_name": contact.last_name,
        "email": contact.email,
    } if contact else None
    return result


async def create_invoice(session: AsyncSession, organization_id: UUID, data: InvoiceCreate) -> dict:
    """Create a DRAFT invoice; the total is the sum of the line items."""
    await _get_contact(session, organization_id, data.contact_id)
    items = [
        {**item.model_dump(), "total": item.quantity * item.unit_amount}
        for item in data.items
    ]
    due_date = ensure_utc(data.due_date) or utcnow() + relativedelta(days=30)

    invoice = await InvoiceRepository(session).create_obj(organization_id, {
        "contact_id": data.contact_id,
        "invoice_number": await next_invoice_number(session, organization_id),
        "status": InvoiceStatus.DRAFT.value,
        "items": items,
        "total": sum(item["total"] for item in items),
        "currency": data.currency.lower(),
        "due_date": due_date,
        "notes": data.notes,
    })
    logger.info("Invoice %s created for %s", invoice.invoice_number, organization_id)
    return invoice.to_dict()


async def send_invoice(
    session: AsyncSession, organization_id: UUID, invoice_id: UUID, integrations: Integrations
) -> dict:
    """Email the invoice to its contact and mark it SENT."""
    invoice = await get_invoice_obj(session, organization_id, invoice_id)
    if invoice.status != InvoiceStatus.DRAFT.value:
        raise ValidationError("Invoice has already been sent")
    contact = await session.get(Contact, invoice.contact_id) if invoice.contact_id else None
    if contact is None or not contact.email:
        raise ValidationError("Invoice contact has no email address")
    organization = await session.get(Organization, organization_id)

    message = TemplateEngine.render("invoice", {
        "invoice_number": invoice.invoice_number,
        "total": invoice.total / 100,
        "currency_symbol": currency_symbol(invoice.currency),
        "due_date": ensure_utc(invoice.due_date),
        "customer_name": " ".join(filter(None, [contact.first_name, contact.last_name])) or contact.email,
        "organization_name": organization.name,
        "payment_url": invoice.payment_url,
    })
    result = await integrations.mailer.send(
        EmailMessage(to=contact.email, subject=message.subject, html=message.html, text=message.text)
    )
    if not result.success:
        logger.warning("Invoice %s email failed: %s", invoice.invoice_number, result.error)

    invoice.status = InvoiceStatus.SENT.value
    invoice.sent_at = utcnow()
    await session.flush()
    return {**invoice.to_dict(), "email_sent": result.success}


def payment_event_context(invoice: Invoice, contact: Contact | None) -> dict[str, Any]:
    return {
        **(contact_event_context(contact) if contact else {}),
        "invoice_id": str(invoice.id),
        "invoice_number": invoice.invoice_number,
        "amount": invoice.total,
        "currency": invoice.currency,
    }


async def mark_paid(
    session: AsyncSession, invoice: Invoice, integrations: Integrations, event_id: str | None = None
) -> dict:
    """Mark the invoice PAID and dispatch PAYMENT_RECEIVED. Already-paid invoices are left alone.

    ``event_id`` is the upstream payment event, when there is one.
    """
    if invoice.status == InvoiceStatus.PAID.value:
        return invoice.to_dict()
    invoice.status = InvoiceStatus.PAID.value
    invoice.paid_at = utcnow()
    await session.flush()
    logger.info("Invoice %s paid", invoice.invoice_number)

    contact = await session.get(Contact, invoice.contact_id) if invoice.contact_id else None
    await trigger_automations(
        session, invoice.organization_id, AutomationTrigger.PAYMENT_RECEIVED,
        payment_event_context(invoice, contact), integrations, event_id=event_id,
    )
    return invoice.to_dict()


# ---------------------------------------------------------------------------
# Stripe events
# ---------------------------------------------------------------------------

async def _invoice_paid(
    session: AsyncSession, stripe_invoice: dict, integrations: Integrations, event_id: str | None
) -> None:
    invoice_ref = (stripe_invoice.get("metadata") or {}).get("invoiceId")
    if not invoice_ref:
        logger.info("Stripe invoice %s has no invoiceId metadata", stripe_invoice.get("id"))
        return
    try:
        invoice = await session.get(Invoice, UUID(str(invoice_ref)))
    except ValueError:
        invoice = None
    if invoice is None:
        logger.warning("Stripe invoice %s references unknown invoice %r", stripe_invoice.get("id"), invoice_ref)
        return
    invoice.stripe_invoice_id = stripe_invoice.get("id") or invoice.stripe_invoice_id
    await mark_paid(session, invoice, integrations, event_id=event_id)


async def handle_stripe_event(session: AsyncSession, event: dict, integrations: Integrations) -> None:
    """Apply a verified Stripe event."""
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "invoice.paid":
        await _invoice_paid(session, obj, integrations, event.get("id"))
    elif event_type == "invoice.payment_failed":
        logger.warning("Stripe invoice %s payment failed", obj.get("id"))
    elif event_type == "checkout.session.completed":
        logger.info("Stripe checkout session %s completed", obj.get("id"))
    elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
        await apply_stripe_subscription(session, obj)
    elif event_type == "customer.subscription.deleted":
        await apply_stripe_subscription(session, obj, deleted=True)
    else:
        logger.info("Unhandled Stripe event type %s", event_type)

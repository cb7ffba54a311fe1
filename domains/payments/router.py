"""Payments API router: products, invoices and the Stripe webhook."""

import logging
from typing import Optional
from uuid import UUID

import stripe
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_integrations, require_org
from core.config import get_settings
from core.database import get_session
from core.errors import DomainError
from core.integrations import Integrations
from domains.accounts.service import OrgSession
from domains.payments import service
from domains.payments.models.schemas import InvoiceCreate, InvoiceStatus, ProductCreate
from domains.payments.repository import (
    InvoiceRepository,
    ProductRepository,
    get_invoice_repository,
    get_product_repository,
)
from patterns.repository import page_response

logger = logging.getLogger(__name__)

router = APIRouter()
webhook_router = APIRouter()


class WebhookHandlerError(DomainError):
    status_code = 500


# ============================================================================
# Products
# ============================================================================

@router.get("/products")
async def list_products(
    org: OrgSession = Depends(require_org),
    repo: ProductRepository = Depends(get_product_repository),
):
    products, total = await repo.list(org.organization_id, page=1, limit=500)
    return {"data": products, "count": total}


@router.post("/products", status_code=201)
async def create_product(
    request: ProductCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_product(session, org.organization_id, request)


@router.delete("/products/{product_id}", status_code=204)
async def delete_product(
    product_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    await service.delete_product(session, org.organization_id, product_id)


# ============================================================================
# Invoices
# ============================================================================

@router.get("/invoices")
async def list_invoices(
    status: Optional[InvoiceStatus] = None,
    contact_id: Optional[UUID] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    repo: InvoiceRepository = Depends(get_invoice_repository),
):
    items, total = await repo.list(
        org.organization_id, page=page, limit=limit,
        filters={"status": status.value if status else None, "contact_id": contact_id},
    )
    return page_response(items, page, limit, total)


@router.post("/invoices", status_code=201)
async def create_invoice(
    request: InvoiceCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_invoice(session, org.organization_id, request)


@router.get("/invoices/{invoice_id}")
async def get_invoice(
    invoice_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_invoice(session, org.organization_id, invoice_id)


@router.post("/invoices/{invoice_id}/send")
async def send_invoice(
    invoice_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.send_invoice(session, org.organization_id, invoice_id, integrations)


@router.post("/invoices/{invoice_id}/paid")
async def mark_invoice_paid(
    invoice_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    invoice = await service.get_invoice_obj(session, org.organization_id, invoice_id)
    return await service.mark_paid(session, invoice, integrations)


# ============================================================================
# Stripe webhook (mounted at /api/webhooks)
# ============================================================================

@webhook_router.post("/stripe")
async def stripe_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        return JSONResponse(status_code=400, content={"error": "No signature"})

    try:
        event = stripe.Webhook.construct_event(payload, signature, get_settings().stripe.webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        logger.warning("Stripe webhook signature verification failed: %s", exc)
        return JSONResponse(status_code=400, content={"error": "Invalid signature"})

    try:
        await service.handle_stripe_event(session, event, integrations)
    except Exception as exc:
        logger.exception("Stripe webhook handler failed for %s", event.get("type"))
        raise WebhookHandlerError("Webhook handler failed") from exc
    return {"received": True}

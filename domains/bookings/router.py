"""Bookings API routers.

``router`` is mounted under /api/bookings and requires an organization
session. ``public_router`` is mounted under /api/public and serves the
booking page: services, open slots and guest bookings by organization slug.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_integrations, require_org
from core.database import get_session
from core.integrations import Integrations
from core.timeutils import ensure_utc, utcnow
from domains.accounts.service import OrgSession
from domains.bookings import service
from domains.bookings.models.schemas import (
    AvailabilityReplace,
    AvailabilityUpdate,
    BookingCancel,
    BookingStatusUpdate,
    BookingUpdate,
    PublicBookingCreate,
    ServiceCreate,
    ServiceUpdate,
)
from domains.bookings.repository import BookingRepository, get_booking_repository
from patterns.repository import page_response
from patterns.workflow_states import BookingStatus

router = APIRouter()
public_router = APIRouter()


# ============================================================================
# Services
# ============================================================================

@router.get("/services")
async def list_services(
    active_only: bool = False,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    services = await service.list_services(session, org.organization_id, active_only=active_only)
    return {"data": services, "count": len(services)}


@router.post("/services", status_code=201)
async def create_service(
    request: ServiceCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_service(session, org.organization_id, request)


@router.get("/services/{service_id}")
async def get_service(
    service_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_service(session, org.organization_id, service_id)


@router.patch("/services/{service_id}")
async def update_service(
    service_id: UUID,
    request: ServiceUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_service(session, org.organization_id, service_id, request)


@router.delete("/services/{service_id}")
async def delete_service(
    service_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    """Delete a service, or deactivate it when it already has bookings."""
    return await service.delete_service(session, org.organization_id, service_id)


# ============================================================================
# Availability (the signed-in provider's own windows)
# ============================================================================

@router.get("/availability")
async def list_availability(
    user_id: Optional[UUID] = None,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    windows = await service.list_availability(session, org.organization_id, user_id or org.user_id)
    return {"data": windows, "count": len(windows)}


@router.put("/availability")
async def replace_availability(
    request: AvailabilityReplace,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    windows = await service.replace_availability(session, org.organization_id, org.user_id, request.windows)
    return {"data": windows, "count": len(windows)}


@router.post("/availability/defaults")
async def default_availability(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    created = await service.create_default_availability(session, org.organization_id, org.user_id)
    return {
        "created": created,
        "data": await service.list_availability(session, org.organization_id, org.user_id),
    }


@router.patch("/availability/{window_id}")
async def update_availability(
    window_id: UUID,
    request: AvailabilityUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_availability(session, org.organization_id, org.user_id, window_id, request)


@router.delete("/availability/{window_id}", status_code=204)
async def delete_availability(
    window_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    await service.delete_availability(session, org.organization_id, org.user_id, window_id)


# ============================================================================
# Bookings
# ============================================================================

@router.get("")
async def list_bookings(
    status: Optional[BookingStatus] = None,
    provider_id: Optional[UUID] = None,
    service_id: Optional[UUID] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    repo: BookingRepository = Depends(get_booking_repository),
):
    bookings, total = await repo.search(
        org.organization_id,
        status=status.value if status else None,
        provider_id=provider_id,
        service_id=service_id,
        start=ensure_utc(start),
        end=ensure_utc(end),
        page=page,
        limit=limit,
    )
    return page_response(await service.with_details(session, bookings), page, limit, total)


@router.get("/upcoming")
async def upcoming_bookings(
    limit: int = Query(10, ge=1, le=50),
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    repo: BookingRepository = Depends(get_booking_repository),
):
    bookings = await repo.upcoming(org.organization_id, utcnow(), limit=limit)
    items = await service.with_details(session, bookings)
    return {"data": items, "count": len(items)}


@router.get("/calendar")
async def week_calendar(
    day: Optional[date] = None,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    """Bookings of the Monday-start week containing ``day`` (default today)."""
    return await service.week_calendar(session, org.organization_id, day or utcnow().date())


@router.get("/stats")
async def booking_stats(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.booking_stats(session, org.organization_id)


@router.get("/{booking_id}")
async def get_booking(
    booking_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    booking = await service.get_booking_obj(session, org.organization_id, booking_id)
    return (await service.with_details(session, [booking]))[0]


@router.patch("/{booking_id}")
async def update_booking(
    booking_id: UUID,
    request: BookingUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_booking(session, org.organization_id, booking_id, request)


@router.post("/{booking_id}/status")
async def change_status(
    booking_id: UUID,
    request: BookingStatusUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.change_status(
        session, org.organization_id, booking_id, request.status, integrations, actor="provider"
    )


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: UUID,
    request: BookingCancel,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.cancel_booking(
        session, org.organization_id, booking_id, integrations, reason=request.reason
    )


# ============================================================================
# Public booking page
# ============================================================================

@public_router.get("/{org_slug}/services")
async def public_services(org_slug: str, session: AsyncSession = Depends(get_session)):
    return await service.public_services(session, org_slug)


@public_router.get("/{org_slug}/slots")
async def available_slots(
    org_slug: str,
    service_id: UUID,
    provider_id: UUID,
    day: date,
    timezone: str = "UTC",
    session: AsyncSession = Depends(get_session),
):
    return await service.available_slots(session, org_slug, service_id, provider_id, day, timezone)


@public_router.post("/{org_slug}/bookings", status_code=201)
async def create_public_booking(
    org_slug: str,
    request: PublicBookingCreate,
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.create_public_booking(session, org_slug, request, integrations)

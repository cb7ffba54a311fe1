"""Scheduling logic: services, availability, slots, public booking and lifecycle.

Status changes go through the booking transition table in
patterns.workflow_states; confirm and cancel dispatch automations, and a
confirmation email goes to the guest on confirm.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from dateutil.relativedelta import MO, relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from core.email.sender import EmailMessage
from core.engine.template_engine import TemplateEngine
from core.errors import ConflictError, NotFoundError, ValidationError
from core.integrations import Integrations
from core.timeutils import ensure_utc, utcnow
from domains.accounts.models.db_models import Organization, User
from domains.accounts.service import get_organization, get_organization_by_slug
from domains.automations.executor import trigger_automations
from domains.automations.models.schemas import AutomationTrigger
from domains.bookings.models.db_models import Availability, Booking, Service
from domains.bookings.models.schemas import (
    AvailabilityUpdate,
    AvailabilityWindow,
    BookingUpdate,
    PublicBookingCreate,
    ServiceCreate,
    ServiceUpdate,
)
from domains.bookings.repository import AvailabilityRepository, BookingRepository, ServiceRepository
from domains.bookings.slots import generate_slots, get_zone, window_bounds
from domains.crm.service import upsert_public_contact
from patterns.domain_config import get_business_config
from patterns.workflow_states import BookingStatus, transition

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

async def _services_with_providers(repo: ServiceRepository, services: list[Service], active_only: bool = False) -> list[dict]:
    providers = await repo.providers([s.id for s in services], active_only=active_only)
    return [{**s.to_dict(), "providers": providers.get(s.id, [])} for s in services]


async def list_services(session: AsyncSession, organization_id: UUID, active_only: bool = False) -> list[dict]:
    repo = ServiceRepository(session)
    return await _services_with_providers(repo, await repo.all(organization_id, active_only=active_only))


async def _get_service(session: AsyncSession, organization_id: UUID, service_id: UUID, active_only: bool = False) -> Service:
    service = await ServiceRepository(session).get_obj(service_id, organization_id)
    if service is None or (active_only and not service.is_active):
        raise NotFoundError("Service")
    return service


async def get_service(session: AsyncSession, organization_id: UUID, service_id: UUID) -> dict:
    service = await _get_service(session, organization_id, service_id)
    return (await _services_with_providers(ServiceRepository(session), [service]))[0]


async def _assign_providers(session: AsyncSession, organization_id: UUID, service: Service, provider_ids: list[UUID]) -> None:
    repo = ServiceRepository(session)
    members = await repo.member_ids(organization_id, provider_ids)
    if len(members) != len(set(provider_ids)):
        raise ValidationError("Providers must be members of the organization")
    await repo.set_providers(service.id, provider_ids)
    for provider_id in provider_ids:
        await create_default_availability(session, organization_id, provider_id)


async def create_service(session: AsyncSession, organization_id: UUID, data: ServiceCreate) -> dict:
    repo = ServiceRepository(session)
    service = await repo.create_obj(organization_id, data.model_dump(exclude={"provider_ids"}))
    if data.provider_ids:
        await _assign_providers(session, organization_id, service, data.provider_ids)
    return await get_service(session, organization_id, service.id)


async def update_service(session: AsyncSession, organization_id: UUID, service_id: UUID, data: ServiceUpdate) -> dict:
    service = await _get_service(session, organization_id, service_id)
    updates = {k: v for k, v in data.model_dump(exclude_unset=True, exclude={"provider_ids"}).items() if v is not None}
    await ServiceRepository(session).update_obj(service, updates)
    if data.provider_ids is not None:
        await _assign_providers(session, organization_id, service, data.provider_ids)
    return await get_service(session, organization_id, service.id)


async def delete_service(session: AsyncSession, organization_id: UUID, service_id: UUID) -> dict:
    """Services with bookings are deactivated instead of deleted."""
    repo = ServiceRepository(session)
    service = await _get_service(session, organization_id, service_id)
    if await repo.booking_count(service.id):
        service.is_active = False
        await session.flush()
        return {"deleted": False, "deactivated": True}
    await session.delete(service)
    await session.flush()
    return {"deleted": True, "deactivated": False}


async def public_services(session: AsyncSession, org_slug: str) -> dict:
    organization = await get_organization_by_slug(session, org_slug)
    repo = ServiceRepository(session)
    services = await repo.all(organization.id, active_only=True)
    providers = await repo.providers([s.id for s in services], active_only=True)
    return {
        "organization": {
            "id": str(organization.id),
            "name": organization.name,
            "slug": organization.slug,
            "logo": organization.logo,
        },
        "services": [
            {
                "id": str(s.id),
                "name": s.name,
                "description": s.description,
                "duration_minutes": s.duration_minutes,
                "price": s.price,
                "currency": s.currency,
                "color": s.color,
                "providers": [
                    {"id": p["id"], "name": p["name"], "image": p["image"]} for p in providers.get(s.id, [])
                ],
            }
            for s in services
        ],
    }


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------

async def list_availability(session: AsyncSession, organization_id: UUID, user_id: UUID) -> list[dict]:
    rows = await AvailabilityRepository(session).for_user(organization_id, user_id)
    return [row.to_dict() for row in rows]


async def replace_availability(
    session: AsyncSession, organization_id: UUID, user_id: UUID, windows: list[AvailabilityWindow]
) -> list[dict]:
    rows = await AvailabilityRepository(session).replace(
        organization_id, user_id, [w.model_dump() for w in windows]
    )
    return [row.to_dict() for row in sorted(rows, key=lambda r: (r.day_of_week, r.start_time))]


async def create_default_availability(session: AsyncSession, organization_id: UUID, user_id: UUID) -> bool:
    """Seed Mon-Fri 09:00-17:00 for a provider with no availability yet."""
    repo = AvailabilityRepository(session)
    if await repo.for_user(organization_id, user_id):
        return False
    config = get_business_config().bookings
    await repo.replace(organization_id, user_id, [
        {"day_of_week": day, "start_time": config.default_start, "end_time": config.default_end}
        for day in config.default_days
    ])
    return True


async def _get_window(session: AsyncSession, organization_id: UUID, user_id: UUID, window_id: UUID) -> Availability:
    window = await AvailabilityRepository(session).get_obj(window_id, organization_id)
    if window is None or window.user_id != user_id:
        raise NotFoundError("Availability slot")
    return window


async def update_availability(
    session: AsyncSession, organization_id: UUID, user_id: UUID, window_id: UUID, data: AvailabilityUpdate
) -> dict:
    window = await _get_window(session, organization_id, user_id, window_id)
    updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    start = updates.get("start_time", window.start_time)
    end = updates.get("end_time", window.end_time)
    if end <= start:
        raise ValidationError("end_time must be after start_time")
    await AvailabilityRepository(session).update_obj(window, updates)
    return window.to_dict()


async def delete_availability(session: AsyncSession, organization_id: UUID, user_id: UUID, window_id: UUID) -> None:
    window = await _get_window(session, organization_id, user_id, window_id)
    await session.delete(window)
    await session.flush()


# ---------------------------------------------------------------------------
# Slots & public booking
# ---------------------------------------------------------------------------

async def _check_provider(session: AsyncSession, organization_id: UUID, provider_id: UUID) -> None:
    if not await ServiceRepository(session).member_ids(organization_id, [provider_id]):
        raise NotFoundError("Provider")


async def available_slots(
    session: AsyncSession,
    org_slug: str,
    service_id: UUID,
    provider_id: UUID,
    day: date,
    timezone_name: str = "UTC",
    now: datetime | None = None,
) -> dict:
    """Open start times for one provider, service and day in ``timezone_name``."""
    zone = get_zone(timezone_name)
    organization = await get_organization_by_slug(session, org_slug)
    service = await _get_service(session, organization.id, service_id, active_only=True)
    await _check_provider(session, organization.id, provider_id)

    windows = [
        (w.start_time, w.end_time)
        for w in await AvailabilityRepository(session).for_user(organization.id, provider_id, active_only=True)
        if w.day_of_week == day.weekday()
    ]
    slots: list[datetime] = []
    if windows:
        bounds = [window_bounds(day, start, end, zone) for start, end in windows]
        range_start = min(b[0] for b in bounds) - timedelta(minutes=service.buffer_before + service.duration_minutes)
        range_end = max(b[1] for b in bounds) + timedelta(minutes=service.buffer_after + service.duration_minutes)
        busy = await BookingRepository(session).busy_for_provider(provider_id, range_start, range_end)

        slots = generate_slots(
            day,
            windows,
            zone,
            service.duration_minutes,
            [(b.start_time, b.end_time) for b in busy],
            now or utcnow(),
            buffer_before=service.buffer_before,
            buffer_after=service.buffer_after,
            min_notice_minutes=service.min_notice_minutes,
            max_advance_days=service.max_advance_days,
            interval_minutes=get_business_config().bookings.slot_interval_minutes,
        )
    return {
        "date": day.isoformat(),
        "timezone": timezone_name,
        "slots": [slot.astimezone(zone).isoformat() for slot in slots],
    }


def booking_event_context(booking: Booking, service: Service | None = None) -> dict[str, Any]:
    first_name, _, last_name = booking.guest_name.partition(" ")
    return {
        "booking_id": str(booking.id),
        "service_id": str(booking.service_id),
        "service_name": service.name if service else None,
        "provider_id": str(booking.provider_id),
        "contact_id": str(booking.contact_id) if booking.contact_id else None,
        "email": booking.guest_email,
        "name": booking.guest_name,
        "first_name": first_name,
        "last_name": last_name or None,
        "phone": booking.guest_phone,
        "start_time": booking.to_dict()["start_time"],
        "end_time": booking.to_dict()["end_time"],
        "status": booking.status,
    }


async def create_public_booking(
    session: AsyncSession, org_slug: str, data: PublicBookingCreate, integrations: Integrations
) -> dict:
    """Book a slot from the public booking page. New bookings are PENDING."""
    get_zone(data.timezone)
    organization = await get_organization_by_slug(session, org_slug)
    service = await _get_service(session, organization.id, data.service_id, active_only=True)
    await _check_provider(session, organization.id, data.provider_id)

    start = ensure_utc(data.start_time)
    end = start + timedelta(minutes=service.duration_minutes)
    repo = BookingRepository(session)
    if await repo.busy_for_provider(data.provider_id, start, end):
        raise ConflictError("This time slot is no longer available")

    contact, _ = await upsert_public_contact(
        session,
        organization.id,
        email=data.guest_email,
        name=data.guest_name,
        phone=data.guest_phone,
        source=get_business_config().bookings.contact_source,
    )
    booking = await repo.create_obj(organization.id, {
        "service_id": service.id,
        "provider_id": data.provider_id,
        "contact_id": contact.id,
        "start_time": start,
        "end_time": end,
        "timezone": data.timezone,
        "guest_name": data.guest_name,
        "guest_email": data.guest_email.lower(),
        "guest_phone": data.guest_phone,
        "notes": data.notes,
        "custom_responses": data.custom_responses,
        "status": BookingStatus.PENDING.value,
    })
    logger.info("Public booking %s for %s at %s", booking.id, organization.slug, start.isoformat())

    await trigger_automations(
        session, organization.id, AutomationTrigger.BOOKING_CREATED,
        booking_event_context(booking, service), integrations,
    )
    return {**booking.to_dict(), "service": {"name": service.name, "duration_minutes": service.duration_minutes}}


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

async def get_booking_obj(session: AsyncSession, organization_id: UUID, booking_id: UUID) -> Booking:
    booking = await BookingRepository(session).get_obj(booking_id, organization_id)
    if booking is None:
        raise NotFoundError("Booking")
    return booking


async def _send_confirmation(
    booking: Booking, service: Service, organization: Organization, integrations: Integrations
) -> bool:
    zone = get_zone(booking.timezone)
    message = TemplateEngine.render("booking_confirmation", {
        "customer_name": booking.guest_name,
        "service_name": service.name,
        "start_time": ensure_utc(booking.start_time).astimezone(zone),
        "duration": service.duration_minutes,
        "organization_name": organization.name,
        "notes": booking.notes,
    })
    result = await integrations.mailer.send(
        EmailMessage(to=booking.guest_email, subject=message.subject, html=message.html, text=message.text)
    )
    return result.success


async def change_status(
    session: AsyncSession,
    organization_id: UUID,
    booking_id: UUID,
    status: BookingStatus,
    integrations: Integrations,
    actor: str = "provider",
    reason: str | None = None,
) -> dict:
    """Move a booking along PENDING -> CONFIRMED -> COMPLETED/NO_SHOW, or cancel it."""
    booking = await get_booking_obj(session, organization_id, booking_id)
    status = BookingStatus(status)
    record = transition(BookingStatus(booking.status), status, actor=actor, metadata={"reason": reason})

    booking.status = status.value
    if status is BookingStatus.CANCELLED:
        booking.cancelled_at = record.timestamp
        booking.cancel_reason = reason
        booking.cancelled_by = actor
    await session.flush()
    logger.info("Booking %s %s -> %s by %s", booking.id, record.from_state, record.to_state, actor)

    service = await session.get(Service, booking.service_id)
    result = booking.to_dict()
    if status is BookingStatus.CONFIRMED:
        organization = await get_organization(session, organization_id)
        result["email_sent"] = await _send_confirmation(booking, service, organization, integrations)
        trigger = AutomationTrigger.BOOKING_CONFIRMED
    elif status is BookingStatus.CANCELLED:
        trigger = AutomationTrigger.BOOKING_CANCELLED
    else:
        return result

    context = {**booking_event_context(booking, service), "cancel_reason": booking.cancel_reason}
    await trigger_automations(session, organization_id, trigger, context, integrations)
    return result


async def cancel_booking(
    session: AsyncSession,
    organization_id: UUID,
    booking_id: UUID,
    integrations: Integrations,
    reason: str | None = None,
    cancelled_by: str = "provider",
) -> dict:
    return await change_status(
        session, organization_id, booking_id, BookingStatus.CANCELLED, integrations,
        actor=cancelled_by, reason=reason,
    )


async def update_booking(session: AsyncSession, organization_id: UUID, booking_id: UUID, data: BookingUpdate) -> dict:
    """Edit notes and meeting details; a new start time reschedules and recomputes the end."""
    booking = await get_booking_obj(session, organization_id, booking_id)
    updates = data.model_dump(exclude_unset=True)

    if updates.get("start_time"):
        if BookingStatus(booking.status) not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            raise ValidationError(f"Cannot reschedule a {booking.status.lower()} booking")
        service = await session.get(Service, booking.service_id)
        start = ensure_utc(updates["start_time"])
        end = start + timedelta(minutes=service.duration_minutes)
        repo = BookingRepository(session)
        if await repo.busy_for_provider(booking.provider_id, start, end, exclude_id=booking.id):
            raise ConflictError("This time slot is no longer available")
        updates["start_time"] = start
        updates["end_time"] = end
    else:
        updates.pop("start_time", None)

    await BookingRepository(session).update_obj(booking, updates)
    return booking.to_dict()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def with_details(session: AsyncSession, bookings: list[Booking]) -> list[dict]:
    """Attach service and provider summaries to booking dicts."""
    services: dict[UUID, Service | None] = {}
    providers: dict[UUID, User | None] = {}
    results = []
    for booking in bookings:
        if booking.service_id not in services:
            services[booking.service_id] = await session.get(Service, booking.service_id)
        if booking.provider_id not in providers:
            providers[booking.provider_id] = await session.get(User, booking.provider_id)
        service = services[booking.service_id]
        provider = providers[booking.provider_id]
        results.append({
            **booking.to_dict(),
            "service": {
                "id": str(service.id),
                "name": service.name,
                "duration_minutes": service.duration_minutes,
                "color": service.color,
            } if service else None,
            "provider": {"id": str(provider.id), "name": provider.name, "email": provider.email} if provider else None,
        })
    return results


def week_bounds(day: date) -> tuple[datetime, datetime]:
    """Monday 00:00 UTC of the week containing ``day`` and the following Monday."""
    monday = day + relativedelta(weekday=MO(-1))
    start = datetime.combine(monday, datetime.min.time(), tzinfo=timezone.utc)
    return start, start + relativedelta(weeks=1)


async def week_calendar(session: AsyncSession, organization_id: UUID, day: date) -> dict:
    start, end = week_bounds(day)
    bookings = await BookingRepository(session).between(organization_id, start, end)
    return {
        "week_start": start.date().isoformat(),
        "week_end": (end - timedelta(days=1)).date().isoformat(),
        "data": await with_details(session, bookings),
    }


async def booking_stats(session: AsyncSession, organization_id: UUID, now: datetime | None = None) -> dict:
    now = ensure_utc(now or utcnow())
    repo = BookingRepository(session)
    today_start = datetime.combine(now.date(), datetime.min.time(), tzinfo=now.tzinfo)
    week_start, week_end = week_bounds(now.date())
    return {
        "total": await repo.count(organization_id),
        "this_week": await repo.count_between(organization_id, week_start, week_end),
        "today": await repo.count_between(organization_id, today_start, today_start + timedelta(days=1)),
        "pending": await repo.count(organization_id, status=BookingStatus.PENDING.value),
        "completed": await repo.count(organization_id, status=BookingStatus.COMPLETED.value),
    }

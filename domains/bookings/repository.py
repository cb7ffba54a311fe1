"""Booking repositories: services, availability and bookings."""

from datetime import datetime
from typing import Iterable
from uuid import UUID

from fastapi import Depends
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.accounts.models.db_models import Membership, User
from domains.bookings.models.db_models import Availability, Booking, Service, ServiceProvider
from patterns.repository import BaseRepository
from patterns.workflow_states import BookingStatus

_CANCELLED = BookingStatus.CANCELLED.value


class ServiceRepository(BaseRepository[Service]):
    model = Service
    default_order = (Service.name,)

    async def all(self, organization_id: UUID, active_only: bool = False) -> list[Service]:
        stmt = self._scoped(organization_id)
        if active_only:
            stmt = stmt.where(Service.is_active.is_(True))
        return list((await self.session.execute(stmt.order_by(Service.name))).scalars().all())

    async def providers(self, service_ids: list[UUID], active_only: bool = False) -> dict[UUID, list[dict]]:
        if not service_ids:
            return {}
        stmt = (
            select(ServiceProvider.service_id, User)
            .join(User, User.id == ServiceProvider.user_id)
            .where(ServiceProvider.service_id.in_(service_ids))
            .order_by(User.name)
        )
        if active_only:
            stmt = stmt.where(ServiceProvider.is_active.is_(True))
        grouped: dict[UUID, list[dict]] = {sid: [] for sid in service_ids}
        for service_id, user in (await self.session.execute(stmt)).all():
            grouped[service_id].append(
                {"id": str(user.id), "name": user.name, "email": user.email, "image": user.image}
            )
        return grouped

    async def set_providers(self, service_id: UUID, user_ids: Iterable[UUID]) -> None:
        await self.session.execute(delete(ServiceProvider).where(ServiceProvider.service_id == service_id))
        for user_id in dict.fromkeys(user_ids):
            self.session.add(ServiceProvider(service_id=service_id, user_id=user_id))
        await self.session.flush()

    async def booking_count(self, service_id: UUID) -> int:
        stmt = select(func.count()).select_from(Booking).where(Booking.service_id == service_id)
        return (await self.session.execute(stmt)).scalar() or 0

    async def member_ids(self, organization_id: UUID, user_ids: Iterable[UUID]) -> set[UUID]:
        ids = list(user_ids)
        if not ids:
            return set()
        stmt = select(Membership.user_id).where(
            Membership.organization_id == organization_id, Membership.user_id.in_(ids)
        )
        return set((await self.session.execute(stmt)).scalars().all())


class AvailabilityRepository(BaseRepository[Availability]):
    model = Availability

    async def for_user(self, organization_id: UUID, user_id: UUID, active_only: bool = False) -> list[Availability]:
        stmt = self._scoped(organization_id).where(Availability.user_id == user_id)
        if active_only:
            stmt = stmt.where(Availability.is_active.is_(True))
        stmt = stmt.order_by(Availability.day_of_week, Availability.start_time)
        return list((await self.session.execute(stmt)).scalars().all())

    async def replace(self, organization_id: UUID, user_id: UUID, windows: list[dict]) -> list[Availability]:
        await self.session.execute(
            delete(Availability).where(
                Availability.organization_id == organization_id, Availability.user_id == user_id
            )
        )
        rows = [
            Availability(organization_id=organization_id, user_id=user_id, is_active=True, **window)
            for window in windows
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return rows


class BookingRepository(BaseRepository[Booking]):
    model = Booking
    default_order = (Booking.start_time,)

    async def search(
        self,
        organization_id: UUID,
        status: str | None = None,
        provider_id: UUID | None = None,
        service_id: UUID | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Booking], int]:
        conditions = [Booking.organization_id == organization_id]
        if status:
            conditions.append(Booking.status == status)
        if provider_id:
            conditions.append(Booking.provider_id == provider_id)
        if service_id:
            conditions.append(Booking.service_id == service_id)
        if start:
            conditions.append(Booking.start_time >= start)
        if end:
            conditions.append(Booking.start_time <= end)

        stmt = (
            select(Booking)
            .where(*conditions)
            .order_by(Booking.start_time)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Booking).where(*conditions)
        bookings = list((await self.session.execute(stmt)).scalars().all())
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return bookings, total

    async def between(
        self, organization_id: UUID, start: datetime, end: datetime, exclude_cancelled: bool = True
    ) -> list[Booking]:
        stmt = self._scoped(organization_id).where(Booking.start_time >= start, Booking.start_time < end)
        if exclude_cancelled:
            stmt = stmt.where(Booking.status != _CANCELLED)
        return list((await self.session.execute(stmt.order_by(Booking.start_time))).scalars().all())

    async def upcoming(self, organization_id: UUID, now: datetime, limit: int = 10) -> list[Booking]:
        stmt = (
            self._scoped(organization_id)
            .where(
                Booking.start_time >= now,
                Booking.status.in_([BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value]),
            )
            .order_by(Booking.start_time)
            .limit(limit)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def busy_for_provider(
        self, provider_id: UUID, start: datetime, end: datetime, exclude_id: UUID | None = None
    ) -> list[Booking]:
        """Non-cancelled bookings of a provider overlapping [start, end), across organizations."""
        stmt = select(Booking).where(
            Booking.provider_id == provider_id,
            Booking.status != _CANCELLED,
            Booking.start_time < end,
            Booking.end_time > start,
        )
        if exclude_id is not None:
            stmt = stmt.where(Booking.id != exclude_id)
        return list((await self.session.execute(stmt)).scalars().all())

    async def count_between(self, organization_id: UUID, start: datetime, end: datetime) -> int:
        stmt = select(func.count()).select_from(Booking).where(
            Booking.organization_id == organization_id,
            Booking.start_time >= start,
            Booking.start_time < end,
        )
        return (await self.session.execute(stmt)).scalar() or 0


def get_service_repository(session: AsyncSession = Depends(get_session)) -> ServiceRepository:
    return ServiceRepository(session)


def get_availability_repository(session: AsyncSession = Depends(get_session)) -> AvailabilityRepository:
    return AvailabilityRepository(session)


def get_booking_repository(session: AsyncSession = Depends(get_session)) -> BookingRepository:
    return BookingRepository(session)

"""SQLAlchemy models for scheduling: services, providers, availability, bookings.

Times are stored as UTC; availability windows are wall-clock ``HH:MM``
strings interpreted in the timezone the caller asks slots for.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, TenantMixin
from core.timeutils import isoformat


def _id(value: uuid.UUID | None) -> str | None:
    return str(value) if value else None


class Service(TenantMixin, Base):
    """A bookable offering (consultation, lesson, ...)."""

    __tablename__ = "services"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#3B82F6")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    buffer_before: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    buffer_after: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_advance_days: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    min_notice_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "duration_minutes": self.duration_minutes,
            "price": self.price,
            "currency": self.currency,
            "color": self.color,
            "is_active": self.is_active,
            "requires_payment": self.requires_payment,
            "buffer_before": self.buffer_before,
            "buffer_after": self.buffer_after,
            "max_advance_days": self.max_advance_days,
            "min_notice_minutes": self.min_notice_minutes,
            "created_at": isoformat(self.created_at),
        }


class ServiceProvider(Base):
    """Link between a service and a team member who delivers it."""

    __tablename__ = "service_providers"

    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Availability(TenantMixin, Base):
    """A weekly working window for one provider. ``day_of_week`` 0 is Monday."""

    __tablename__ = "availability"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "day_of_week": self.day_of_week,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "is_active": self.is_active,
        }


class Booking(TenantMixin, Base):
    """An appointment between a guest and a provider for one service."""

    __tablename__ = "bookings"

    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    guest_name: Mapped[str] = mapped_column(String(200), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(320), nullable=False)
    guest_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    meeting_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    custom_responses: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", index=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "service_id": str(self.service_id),
            "provider_id": str(self.provider_id),
            "contact_id": _id(self.contact_id),
            "start_time": isoformat(self.start_time),
            "end_time": isoformat(self.end_time),
            "timezone": self.timezone,
            "guest_name": self.guest_name,
            "guest_email": self.guest_email,
            "guest_phone": self.guest_phone,
            "notes": self.notes,
            "internal_notes": self.internal_notes,
            "meeting_url": self.meeting_url,
            "location": self.location,
            "custom_responses": self.custom_responses or {},
            "status": self.status,
            "cancelled_at": isoformat(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
            "cancelled_by": self.cancelled_by,
            "created_at": isoformat(self.created_at),
        }

"""Pydantic schemas for services, availability and bookings."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from patterns.workflow_states import BookingStatus

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    duration_minutes: int = Field(30, ge=5, le=24 * 60)
    price: float = Field(0.0, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    color: str = Field("#3B82F6", pattern=r"^#[0-9A-Fa-f]{6}$")
    is_active: bool = True
    requires_payment: bool = False
    buffer_before: int = Field(0, ge=0)
    buffer_after: int = Field(0, ge=0)
    max_advance_days: int = Field(60, ge=1)
    min_notice_minutes: int = Field(0, ge=0)
    provider_ids: list[UUID] = Field(default_factory=list)


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=5, le=24 * 60)
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    is_active: Optional[bool] = None
    requires_payment: Optional[bool] = None
    buffer_before: Optional[int] = Field(None, ge=0)
    buffer_after: Optional[int] = Field(None, ge=0)
    max_advance_days: Optional[int] = Field(None, ge=1)
    min_notice_minutes: Optional[int] = Field(None, ge=0)
    provider_ids: Optional[list[UUID]] = None  # full replacement when given


class AvailabilityWindow(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)  # 0 = Monday
    start_time: str = Field(..., pattern=_HHMM)
    end_time: str = Field(..., pattern=_HHMM)

    @model_validator(mode="after")
    def _check_order(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AvailabilityReplace(BaseModel):
    windows: list[AvailabilityWindow]


class AvailabilityUpdate(BaseModel):
    start_time: Optional[str] = Field(None, pattern=_HHMM)
    end_time: Optional[str] = Field(None, pattern=_HHMM)
    is_active: Optional[bool] = None


class PublicBookingCreate(BaseModel):
    service_id: UUID
    provider_id: UUID
    start_time: datetime
    timezone: str = "UTC"
    guest_name: str = Field(..., min_length=1, max_length=200)
    guest_email: EmailStr
    guest_phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    custom_responses: dict = Field(default_factory=dict)


class BookingUpdate(BaseModel):
    start_time: Optional[datetime] = None  # reschedule; end time follows the service duration
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    meeting_url: Optional[str] = None
    location: Optional[str] = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingCancel(BaseModel):
    reason: Optional[str] = None

"""Pydantic schemas for CRM API request validation."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ContactStatus(str, Enum):
    LEAD = "LEAD"
    PROSPECT = "PROSPECT"
    CUSTOMER = "CUSTOMER"
    CHURNED = "CHURNED"
    ARCHIVED = "ARCHIVED"


class DealStatus(str, Enum):
    OPEN = "OPEN"
    WON = "WON"
    LOST = "LOST"


class ActivityType(str, Enum):
    NOTE = "NOTE"
    CALL = "CALL"
    EMAIL = "EMAIL"
    MEETING = "MEETING"
    TASK = "TASK"


_COLOR = r"^#[0-9A-Fa-f]{6}$"


# ---------------------------------------------------------------------------
# Contacts & companies
# ---------------------------------------------------------------------------

class ContactCreate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    title: Optional[str] = Field(None, max_length=200)
    company_id: Optional[UUID] = None
    status: ContactStatus = ContactStatus.LEAD
    source: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    custom_fields: dict = Field(default_factory=dict)
    tag_ids: list[UUID] = Field(default_factory=list)


class ContactUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    title: Optional[str] = Field(None, max_length=200)
    company_id: Optional[UUID] = None
    status: Optional[ContactStatus] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    custom_fields: Optional[dict] = None
    tag_ids: Optional[list[UUID]] = None  # full replacement when given


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    website: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    website: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None


class ContactImportRequest(BaseModel):
    csv: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(None, pattern=_COLOR)


class TagUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = Field(None, pattern=_COLOR)


# ---------------------------------------------------------------------------
# Pipelines & deals
# ---------------------------------------------------------------------------

class StageInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field("#6B7280", pattern=_COLOR)
    probability: int = Field(0, ge=0, le=100)


class PipelineCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    is_default: bool = False
    stages: list[StageInput] = Field(..., min_length=1)


class DealCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    value: float = Field(0.0, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    pipeline_id: Optional[UUID] = None  # default pipeline when omitted
    stage_id: Optional[UUID] = None     # first stage when omitted
    contact_id: Optional[UUID] = None
    company_id: Optional[UUID] = None
    probability: Optional[int] = Field(None, ge=0, le=100)
    expected_close_date: Optional[datetime] = None
    notes: Optional[str] = None


class DealUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    value: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    contact_id: Optional[UUID] = None
    company_id: Optional[UUID] = None
    probability: Optional[int] = Field(None, ge=0, le=100)
    expected_close_date: Optional[datetime] = None
    notes: Optional[str] = None


class DealMove(BaseModel):
    stage_id: UUID


class DealStatusUpdate(BaseModel):
    status: DealStatus


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------

class ActivityCreate(BaseModel):
    type: ActivityType = ActivityType.NOTE
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    contact_id: Optional[UUID] = None
    deal_id: Optional[UUID] = None
    due_date: Optional[datetime] = None
    completed: bool = False


class ActivityUpdate(BaseModel):
    type: Optional[ActivityType] = None
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None

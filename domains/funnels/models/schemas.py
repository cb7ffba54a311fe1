"""Pydantic schemas for funnels and public form submissions."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field


class FunnelTemplateKey(str, Enum):
    LEAD_MAGNET = "LEAD_MAGNET"
    CONSULTATION = "CONSULTATION"
    FREE_TRIAL = "FREE_TRIAL"
    DIRECT_PURCHASE = "DIRECT_PURCHASE"
    WEBINAR = "WEBINAR"
    WAITLIST = "WAITLIST"


class StepType(str, Enum):
    LANDING_PAGE = "LANDING_PAGE"
    OPT_IN_FORM = "OPT_IN_FORM"
    SALES_PAGE = "SALES_PAGE"
    CHECKOUT = "CHECKOUT"
    CALENDAR = "CALENDAR"
    THANK_YOU = "THANK_YOU"


class FunnelStep(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: StepType
    content: dict[str, Any] = Field(default_factory=dict)


class FunnelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    template: Optional[FunnelTemplateKey] = None
    steps: Optional[list[FunnelStep]] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class FunnelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    steps: Optional[list[FunnelStep]] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class FunnelSubmission(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    message: Optional[str] = None
    fields: dict[str, Any] = Field(default_factory=dict)

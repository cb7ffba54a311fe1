"""Pydantic schemas and enums for products and invoices."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    VOID = "VOID"


class RecurringInterval(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: int = Field(..., ge=0)  # cents
    currency: str = Field("usd", min_length=3, max_length=3)
    recurring_interval: Optional[RecurringInterval] = None


class InvoiceItem(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(..., ge=1)
    unit_amount: int = Field(..., ge=0)  # cents


class InvoiceCreate(BaseModel):
    contact_id: UUID
    items: list[InvoiceItem] = Field(..., min_length=1)
    currency: str = Field("usd", min_length=3, max_length=3)
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

"""Pydantic schemas and enums for campaigns."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from patterns.workflow_states import CampaignStatus


class RecipientType(str, Enum):
    ALL_CONTACTS = "ALL_CONTACTS"
    SEGMENT = "SEGMENT"


class RecipientStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    OPENED = "OPENED"
    CLICKED = "CLICKED"
    FAILED = "FAILED"


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    subject: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)
    recipient_type: RecipientType = RecipientType.ALL_CONTACTS
    segment_ids: list[UUID] = Field(default_factory=list)  # tag ids for SEGMENT
    scheduled_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _segment_needs_tags(self):
        if self.recipient_type is RecipientType.SEGMENT and not self.segment_ids:
            raise ValueError("segment_ids is required for SEGMENT campaigns")
        return self


class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    subject: Optional[str] = Field(None, min_length=1, max_length=500)
    content: Optional[str] = Field(None, min_length=1)
    status: Optional[CampaignStatus] = None
    scheduled_at: Optional[datetime] = None

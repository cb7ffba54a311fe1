"""Pydantic schemas and enums for documents."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DocumentType(str, Enum):
    PROPOSAL = "PROPOSAL"
    CONTRACT = "CONTRACT"
    INVOICE = "INVOICE"
    QUOTE = "QUOTE"
    REPORT = "REPORT"
    OTHER = "OTHER"


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: DocumentType
    description: Optional[str] = None
    content: dict = Field(default_factory=dict)
    is_public: bool = False


class DocumentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: DocumentType
    template_id: Optional[UUID] = None
    content: Optional[dict] = None
    contact_id: Optional[UUID] = None
    company_id: Optional[UUID] = None
    expires_at: Optional[datetime] = None


class DocumentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[dict] = None
    contact_id: Optional[UUID] = None
    company_id: Optional[UUID] = None
    expires_at: Optional[datetime] = None


class DocumentGenerate(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=4000)
    client_name: Optional[str] = None
    document_type: Optional[DocumentType] = None
    existing_content: Optional[str] = None

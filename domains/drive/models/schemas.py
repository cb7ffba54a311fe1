"""Pydantic schemas for the drive."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

_COLOR = r"^#[0-9A-Fa-f]{6}$"


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    parent_id: Optional[UUID] = None
    color: Optional[str] = Field(None, pattern=_COLOR)


class FolderUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    color: Optional[str] = Field(None, pattern=_COLOR)


class FileCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=500)
    type: str = Field(..., min_length=1, max_length=200)
    size: int = Field(..., ge=0)
    url: str = Field(..., min_length=1, max_length=1000)
    folder_id: Optional[UUID] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class FileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=500)
    folder_id: Optional[UUID] = None
    description: Optional[str] = None
    tags: Optional[list[str]] = None

"""Pydantic schemas and enums for social posts."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SocialPlatform(str, Enum):
    TWITTER = "TWITTER"
    LINKEDIN = "LINKEDIN"
    INSTAGRAM = "INSTAGRAM"
    FACEBOOK = "FACEBOOK"


class PostStatus(str, Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


class PostCreate(BaseModel):
    platform: SocialPlatform
    content: str = Field(..., min_length=1)
    media_urls: list[str] = Field(default_factory=list)
    scheduled_at: Optional[datetime] = None


class PostUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1)
    media_urls: Optional[list[str]] = None
    status: Optional[PostStatus] = None
    scheduled_at: Optional[datetime] = None


class PostGenerate(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=2000)
    platform: Optional[SocialPlatform] = None

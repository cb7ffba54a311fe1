"""Pydantic schemas for auth, organizations, team and notifications."""

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Role(str, Enum):
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"
    OWNER = "OWNER"

    @property
    def rank(self) -> int:
        return ROLE_RANK[self]


ROLE_RANK = {Role.MEMBER: 1, Role.ADMIN: 2, Role.OWNER: 3}


def has_role(current: str | Role, required: str | Role) -> bool:
    """True when ``current`` is at least ``required`` (MEMBER < ADMIN < OWNER)."""
    return Role(current).rank >= Role(required).rank


class NotificationType(str, Enum):
    SYSTEM = "SYSTEM"
    AUTOMATION = "AUTOMATION"
    BOOKING = "BOOKING"
    PAYMENT = "PAYMENT"
    TEAM = "TEAM"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    name: Optional[str] = Field(None, max_length=200)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    logo: Optional[str] = None


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    logo: Optional[str] = None
    settings: Optional[dict] = None


class SwitchOrganizationRequest(BaseModel):
    organization_id: UUID


class MemberRoleUpdate(BaseModel):
    role: Role


class InvitationCreate(BaseModel):
    email: EmailStr
    role: Role = Role.MEMBER


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict
    active_organization_id: Optional[str] = None

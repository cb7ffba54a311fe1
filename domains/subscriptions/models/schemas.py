"""Pydantic schemas and enums for plans and usage."""

from enum import Enum

from pydantic import BaseModel


class PlanType(str, Enum):
    FREE = "FREE"
    STARTER = "STARTER"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    INCOMPLETE = "INCOMPLETE"


class Resource(str, Enum):
    CONTACTS = "contacts"
    DEALS = "deals"
    DOCUMENTS = "documents"
    AUTOMATIONS = "automations"
    AI_CREDITS = "ai_credits"
    STORAGE = "storage"
    USERS = "users"


class UsageCheck(BaseModel):
    allowed: bool
    limit: int
    used: float
    remaining: float

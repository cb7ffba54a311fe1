"""Pydantic schemas and enums for automations."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AutomationTrigger(str, Enum):
    CONTACT_CREATED = "CONTACT_CREATED"
    CONTACT_TAG_ADDED = "CONTACT_TAG_ADDED"
    DEAL_CREATED = "DEAL_CREATED"
    DEAL_STAGE_CHANGED = "DEAL_STAGE_CHANGED"
    DEAL_WON = "DEAL_WON"
    DEAL_LOST = "DEAL_LOST"
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    FORM_SUBMITTED = "FORM_SUBMITTED"


class AutomationAction(str, Enum):
    SEND_EMAIL = "SEND_EMAIL"
    ADD_TAG = "ADD_TAG"
    REMOVE_TAG = "REMOVE_TAG"
    UPDATE_CONTACT_STATUS = "UPDATE_CONTACT_STATUS"
    CREATE_TASK = "CREATE_TASK"
    SEND_NOTIFICATION = "SEND_NOTIFICATION"
    WEBHOOK = "WEBHOOK"
    DELAY = "DELAY"


class AutomationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


TRIGGER_LABELS = {
    AutomationTrigger.CONTACT_CREATED: "New contact created",
    AutomationTrigger.CONTACT_TAG_ADDED: "Tag added to contact",
    AutomationTrigger.DEAL_CREATED: "New deal created",
    AutomationTrigger.DEAL_STAGE_CHANGED: "Deal stage changed",
    AutomationTrigger.DEAL_WON: "Deal won",
    AutomationTrigger.DEAL_LOST: "Deal lost",
    AutomationTrigger.BOOKING_CREATED: "New booking created",
    AutomationTrigger.BOOKING_CONFIRMED: "Booking confirmed",
    AutomationTrigger.BOOKING_CANCELLED: "Booking cancelled",
    AutomationTrigger.PAYMENT_RECEIVED: "Payment received",
    AutomationTrigger.FORM_SUBMITTED: "Form submitted",
}

ACTION_LABELS = {
    AutomationAction.SEND_EMAIL: "Send email",
    AutomationAction.ADD_TAG: "Add tag",
    AutomationAction.REMOVE_TAG: "Remove tag",
    AutomationAction.UPDATE_CONTACT_STATUS: "Update contact status",
    AutomationAction.CREATE_TASK: "Create task",
    AutomationAction.SEND_NOTIFICATION: "Send notification",
    AutomationAction.WEBHOOK: "Call webhook",
    AutomationAction.DELAY: "Wait/Delay",
}


def format_trigger(trigger: str) -> str:
    try:
        return TRIGGER_LABELS[AutomationTrigger(trigger)]
    except ValueError:
        return trigger


def format_action(action: str) -> str:
    try:
        return ACTION_LABELS[AutomationAction(action)]
    except ValueError:
        return action


class AutomationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    trigger_type: AutomationTrigger
    trigger_config: dict = Field(default_factory=dict)
    action_type: AutomationAction
    action_config: dict = Field(default_factory=dict)


class AutomationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    trigger_type: Optional[AutomationTrigger] = None
    trigger_config: Optional[dict] = None
    action_type: Optional[AutomationAction] = None
    action_config: Optional[dict] = None
    status: Optional[AutomationStatus] = None

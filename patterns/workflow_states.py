"""Enum-based workflow state machines.

Lifecycle states are str enums with an explicit transition table per
workflow. Services call ``transition()`` before persisting a new status; it
raises ``InvalidTransitionError`` (a ValueError) for moves the table does not
allow. The tables are independent of the database layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# State definitions
# ---------------------------------------------------------------------------

class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


class CampaignStatus(str, Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    SENDING = "SENDING"
    SENT = "SENT"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"


class DocumentStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    SIGNED = "SIGNED"
    EXPIRED = "EXPIRED"


# ---------------------------------------------------------------------------
# Transition rules
# ---------------------------------------------------------------------------

# Allowed transitions: {current_state: [allowed_next_states]}
BOOKING_TRANSITIONS: dict[BookingStatus, list[BookingStatus]] = {
    BookingStatus.PENDING: [BookingStatus.CONFIRMED, BookingStatus.CANCELLED],
    BookingStatus.CONFIRMED: [BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW],
    BookingStatus.CANCELLED: [],  # terminal
    BookingStatus.COMPLETED: [],  # terminal
    BookingStatus.NO_SHOW: [],    # terminal
}

CAMPAIGN_TRANSITIONS: dict[CampaignStatus, list[CampaignStatus]] = {
    CampaignStatus.DRAFT: [CampaignStatus.SCHEDULED, CampaignStatus.SENDING, CampaignStatus.CANCELLED],
    CampaignStatus.SCHEDULED: [CampaignStatus.DRAFT, CampaignStatus.SENDING, CampaignStatus.CANCELLED],
    CampaignStatus.SENDING: [CampaignStatus.SENT, CampaignStatus.PAUSED],
    CampaignStatus.PAUSED: [CampaignStatus.SENDING, CampaignStatus.CANCELLED],
    CampaignStatus.SENT: [],       # terminal
    CampaignStatus.CANCELLED: [],  # terminal
}

DOCUMENT_TRANSITIONS: dict[DocumentStatus, list[DocumentStatus]] = {
    DocumentStatus.DRAFT: [DocumentStatus.SENT, DocumentStatus.SIGNED],
    DocumentStatus.SENT: [DocumentStatus.VIEWED, DocumentStatus.SIGNED, DocumentStatus.EXPIRED],
    DocumentStatus.VIEWED: [DocumentStatus.SIGNED, DocumentStatus.EXPIRED],
    DocumentStatus.SIGNED: [],   # terminal
    DocumentStatus.EXPIRED: [],  # terminal
}

_TABLES: dict[type[Enum], dict] = {
    BookingStatus: BOOKING_TRANSITIONS,
    CampaignStatus: CAMPAIGN_TRANSITIONS,
    DocumentStatus: DOCUMENT_TRANSITIONS,
}


class InvalidTransitionError(ValueError):
    """Raised when a workflow move is not in the transition table."""

    def __init__(self, from_state: Enum, to_state: Enum, allowed: list[Enum]):
        self.from_state = from_state
        self.to_state = to_state
        self.allowed = [s.value for s in allowed]
        super().__init__(
            f"Cannot transition from {from_state.value} to {to_state.value}. "
            f"Allowed: {self.allowed}"
        )


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

def _table_for(state: Enum) -> dict:
    return _TABLES[type(state)]


def can_transition(current: Enum, to_state: Enum) -> bool:
    """Check if a transition is allowed from the current state."""
    return to_state in _table_for(current).get(current, [])


def is_terminal(state: Enum) -> bool:
    return len(_table_for(state).get(state, [])) == 0


@dataclass
class WorkflowTransition:
    """Record of a single state transition."""

    from_state: str
    to_state: str
    timestamp: datetime
    actor: str = "system"
    metadata: dict[str, Any] = field(default_factory=dict)


def transition(
    current: Enum,
    to_state: Enum,
    actor: str = "system",
    metadata: dict[str, Any] | None = None,
) -> WorkflowTransition:
    """Validate a state transition and return its record.

    Raises InvalidTransitionError if the transition is not allowed::

        transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, actor=user_id)
    """
    if not can_transition(current, to_state):
        raise InvalidTransitionError(current, to_state, _table_for(current).get(current, []))

    return WorkflowTransition(
        from_state=current.value,
        to_state=to_state.value,
        timestamp=datetime.now(timezone.utc),
        actor=actor,
        metadata=metadata or {},
    )

"""Test workflow state machines."""
import pytest
from patterns.workflow_states import (
    BookingStatus,
    CampaignStatus,
    DocumentStatus,
    InvalidTransitionError,
    can_transition,
    is_terminal,
    transition,
)


def test_booking_pending_can_confirm():
    record = transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, actor="provider")
    assert record.from_state == "PENDING"
    assert record.to_state == "CONFIRMED"
    assert record.actor == "provider"
    assert record.timestamp.tzinfo is not None


def test_booking_cancelled_is_terminal():
    assert is_terminal(BookingStatus.CANCELLED)
    with pytest.raises(InvalidTransitionError) as exc:
        transition(BookingStatus.CANCELLED, BookingStatus.CONFIRMED)
    assert exc.value.allowed == []


def test_campaign_cannot_skip_to_sent():
    assert not can_transition(CampaignStatus.DRAFT, CampaignStatus.SENT)
    assert can_transition(CampaignStatus.SENDING, CampaignStatus.SENT)


def test_document_lifecycle():
    assert can_transition(DocumentStatus.DRAFT, DocumentStatus.SENT)
    assert can_transition(DocumentStatus.SENT, DocumentStatus.VIEWED)
    assert can_transition(DocumentStatus.VIEWED, DocumentStatus.SIGNED)
    assert not can_transition(DocumentStatus.DRAFT, DocumentStatus.EXPIRED)
    assert not can_transition(DocumentStatus.EXPIRED, DocumentStatus.SIGNED)


def test_invalid_transition_is_value_error():
    with pytest.raises(ValueError, match="Cannot transition from SIGNED to SENT"):
        transition(DocumentStatus.SIGNED, DocumentStatus.SENT)

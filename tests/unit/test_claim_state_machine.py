"""
Claim State Machine Tests.
Tests the transition table and transition validation.
"""

import pytest

from claimflow.core.enums import SYSTEM_ACTOR, ClaimStatus
from claimflow.services.claim_state_machine import (
    NON_TERMINAL_STATUSES,
    TERMINAL_STATUSES,
    ClaimStateMachine,
    TransitionEvent,
    get_claim_state_machine,
    get_status_display_name,
    is_processing_status,
    is_terminal_status,
)
from claimflow.utils.errors import InvalidTransition


@pytest.fixture
def machine():
    return ClaimStateMachine()


class TestTransitionTable:
    """Tests for the adjudication transition table."""

    def test_intake_creates_received(self, machine):
        assert machine.get_next_statuses(None) == [ClaimStatus.RECEIVED]

    def test_received_transitions(self, machine):
        assert set(machine.get_next_statuses(ClaimStatus.RECEIVED)) == {
            ClaimStatus.VALIDATED,
            ClaimStatus.DENIED,
            ClaimStatus.WITHDRAWN,
        }

    def test_validated_transitions(self, machine):
        assert set(machine.get_next_statuses(ClaimStatus.VALIDATED)) == {
            ClaimStatus.PRICED,
            ClaimStatus.DENIED,
            ClaimStatus.PENDING_MANUAL_REVIEW,
            ClaimStatus.WITHDRAWN,
        }

    def test_priced_transitions(self, machine):
        assert set(machine.get_next_statuses(ClaimStatus.PRICED)) == {
            ClaimStatus.APPROVED,
            ClaimStatus.PENDING_MANUAL_REVIEW,
            ClaimStatus.WITHDRAWN,
        }

    def test_manual_review_transitions(self, machine):
        assert set(machine.get_next_statuses(ClaimStatus.PENDING_MANUAL_REVIEW)) == {
            ClaimStatus.VALIDATED,
            ClaimStatus.WITHDRAWN,
        }

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_have_no_exits(self, machine, status):
        assert machine.get_valid_transitions(status) == []
        assert is_terminal_status(status)

    def test_withdraw_from_every_non_terminal_status(self, machine):
        for status in NON_TERMINAL_STATUSES:
            assert TransitionEvent.WITHDRAW in machine.get_valid_events(status)

    def test_can_transition(self, machine):
        assert machine.can_transition(ClaimStatus.PRICED, ClaimStatus.APPROVED)
        assert not machine.can_transition(ClaimStatus.RECEIVED, ClaimStatus.APPROVED)
        assert not machine.can_transition(ClaimStatus.APPROVED, ClaimStatus.WITHDRAWN)

    def test_singleton(self):
        assert get_claim_state_machine() is get_claim_state_machine()


class TestRequireTransition:
    """Tests for transition validation."""

    def test_valid_transition(self, machine):
        transition = machine.require_transition(
            ClaimStatus.RECEIVED, TransitionEvent.VALIDATION_PASSED
        )

        assert transition.to_status == ClaimStatus.VALIDATED

    def test_invalid_transition(self, machine):
        with pytest.raises(InvalidTransition) as exc_info:
            machine.require_transition(
                ClaimStatus.RECEIVED, TransitionEvent.PRICING_COMPLETE, claim_id="CLM-1"
            )

        assert exc_info.value.claim_id == "CLM-1"
        assert exc_info.value.context["event"] == "pricing_complete"

    def test_terminal_status_message(self, machine):
        with pytest.raises(InvalidTransition, match="terminal"):
            machine.require_transition(ClaimStatus.APPROVED, TransitionEvent.WITHDRAW)

    def test_resume_requires_operator(self, machine):
        with pytest.raises(InvalidTransition, match="operator"):
            machine.require_transition(
                ClaimStatus.PENDING_MANUAL_REVIEW,
                TransitionEvent.RESUME_REVIEW,
                actor=SYSTEM_ACTOR,
            )

        transition = machine.require_transition(
            ClaimStatus.PENDING_MANUAL_REVIEW,
            TransitionEvent.RESUME_REVIEW,
            actor="reviewer@payer.test",
        )
        assert transition.to_status == ClaimStatus.VALIDATED

    def test_duplicate_intake_rejected(self, machine):
        with pytest.raises(InvalidTransition):
            machine.require_transition(ClaimStatus.RECEIVED, TransitionEvent.SUBMIT)


class TestStatusHelpers:
    """Tests for status helper functions."""

    def test_processing_statuses(self):
        assert is_processing_status(ClaimStatus.RECEIVED)
        assert is_processing_status(ClaimStatus.PRICED)
        assert not is_processing_status(ClaimStatus.PENDING_MANUAL_REVIEW)
        assert not is_processing_status(ClaimStatus.APPROVED)

    def test_display_names(self):
        assert get_status_display_name(ClaimStatus.PENDING_MANUAL_REVIEW) == "Pending Manual Review"
        assert get_status_display_name(ClaimStatus.APPROVED) == "Approved"

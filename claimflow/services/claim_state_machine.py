"""
Claim Status State Machine.

Provides:
- Valid status transitions
- Transition validation
- Status helpers

State Diagram:
    (intake) -> RECEIVED
    RECEIVED -> VALIDATED | DENIED
    VALIDATED -> PRICED | DENIED | PENDING_MANUAL_REVIEW
    PRICED -> APPROVED | PENDING_MANUAL_REVIEW
    PENDING_MANUAL_REVIEW -> VALIDATED
    any non-terminal -> WITHDRAWN
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from claimflow.core.enums import SYSTEM_ACTOR, ClaimStatus
from claimflow.utils.errors import InvalidTransition


class TransitionEvent(str, Enum):
    """Events that trigger state transitions."""

    SUBMIT = "submit"
    VALIDATION_PASSED = "validation_passed"
    VALIDATION_FAILED = "validation_failed"
    ELIGIBILITY_COVERED = "eligibility_covered"
    ELIGIBILITY_DENIED = "eligibility_denied"
    ELIGIBILITY_UNAVAILABLE = "eligibility_unavailable"
    PRICING_COMPLETE = "pricing_complete"
    PRICING_INCOMPLETE = "pricing_incomplete"
    RESUME_REVIEW = "resume_review"
    WITHDRAW = "withdraw"


@dataclass(frozen=True)
class Transition:
    """Represents a valid state transition."""

    from_status: Optional[ClaimStatus]
    to_status: ClaimStatus
    event: TransitionEvent
    requires_operator: bool = False  # Must be driven by an identified operator
    auto_transition: bool = True  # Triggered by the pipeline itself


# =============================================================================
# Valid Transitions Definition
# =============================================================================


TERMINAL_STATUSES = frozenset(
    {ClaimStatus.APPROVED, ClaimStatus.DENIED, ClaimStatus.WITHDRAWN}
)

NON_TERMINAL_STATUSES = tuple(s for s in ClaimStatus if s not in TERMINAL_STATUSES)


VALID_TRANSITIONS: list[Transition] = [
    # Intake
    Transition(
        from_status=None,
        to_status=ClaimStatus.RECEIVED,
        event=TransitionEvent.SUBMIT,
    ),

    # From RECEIVED
    Transition(
        from_status=ClaimStatus.RECEIVED,
        to_status=ClaimStatus.VALIDATED,
        event=TransitionEvent.VALIDATION_PASSED,
    ),
    Transition(
        from_status=ClaimStatus.RECEIVED,
        to_status=ClaimStatus.DENIED,
        event=TransitionEvent.VALIDATION_FAILED,
    ),

    # From VALIDATED
    Transition(
        from_status=ClaimStatus.VALIDATED,
        to_status=ClaimStatus.PRICED,
        event=TransitionEvent.ELIGIBILITY_COVERED,
    ),
    Transition(
        from_status=ClaimStatus.VALIDATED,
        to_status=ClaimStatus.DENIED,
        event=TransitionEvent.ELIGIBILITY_DENIED,
    ),
    Transition(
        from_status=ClaimStatus.VALIDATED,
        to_status=ClaimStatus.PENDING_MANUAL_REVIEW,
        event=TransitionEvent.ELIGIBILITY_UNAVAILABLE,
    ),

    # From PRICED
    Transition(
        from_status=ClaimStatus.PRICED,
        to_status=ClaimStatus.APPROVED,
        event=TransitionEvent.PRICING_COMPLETE,
    ),
    Transition(
        from_status=ClaimStatus.PRICED,
        to_status=ClaimStatus.PENDING_MANUAL_REVIEW,
        event=TransitionEvent.PRICING_INCOMPLETE,
    ),

    # From PENDING_MANUAL_REVIEW
    Transition(
        from_status=ClaimStatus.PENDING_MANUAL_REVIEW,
        to_status=ClaimStatus.VALIDATED,
        event=TransitionEvent.RESUME_REVIEW,
        requires_operator=True,
        auto_transition=False,
    ),
] + [
    # Withdrawal from any non-terminal status
    Transition(
        from_status=status,
        to_status=ClaimStatus.WITHDRAWN,
        event=TransitionEvent.WITHDRAW,
        auto_transition=False,
    )
    for status in NON_TERMINAL_STATUSES
]


# =============================================================================
# State Machine
# =============================================================================


class ClaimStateMachine:
    """
    Transition table for the adjudication lifecycle.

    Looks up and validates transitions; it holds no claim state.
    """

    def __init__(self, transitions: Optional[list[Transition]] = None):
        self._transitions: dict[tuple[Optional[ClaimStatus], TransitionEvent], Transition] = {}
        self._from_status_map: dict[Optional[ClaimStatus], list[Transition]] = {}

        for transition in transitions or VALID_TRANSITIONS:
            self._transitions[(transition.from_status, transition.event)] = transition
            self._from_status_map.setdefault(transition.from_status, []).append(transition)

    def get_valid_transitions(self, status: Optional[ClaimStatus]) -> list[Transition]:
        """Get all valid transitions from a given status."""
        return list(self._from_status_map.get(status, []))

    def get_valid_events(self, status: Optional[ClaimStatus]) -> list[TransitionEvent]:
        """Get all valid events for a given status."""
        return [t.event for t in self.get_valid_transitions(status)]

    def get_next_statuses(self, status: Optional[ClaimStatus]) -> list[ClaimStatus]:
        """Get all possible next statuses from current status."""
        return [t.to_status for t in self.get_valid_transitions(status)]

    def can_transition(self, from_status: Optional[ClaimStatus], to_status: ClaimStatus) -> bool:
        """Check if transition from one status to another is valid."""
        return to_status in self.get_next_statuses(from_status)

    def get_transition(
        self,
        from_status: Optional[ClaimStatus],
        event: TransitionEvent,
    ) -> Optional[Transition]:
        """Get transition for a status and event combination."""
        return self._transitions.get((from_status, event))

    def require_transition(
        self,
        from_status: Optional[ClaimStatus],
        event: TransitionEvent,
        claim_id: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Transition:
        """
        Resolve a transition or reject it.

        Raises:
            InvalidTransition: if the event is not valid from ``from_status``,
                or needs an operator and none was given
        """
        transition = self.get_transition(from_status, event)
        current = from_status.value if from_status else "none"

        if transition is None:
            if from_status in TERMINAL_STATUSES:
                message = f"Claim is in terminal status {current}; {event.value} rejected"
            else:
                message = f"Invalid transition: {current} + {event.value}"
            raise InvalidTransition(
                message, claim_id=claim_id, from_status=current, event=event.value
            )

        if transition.requires_operator and (not actor or actor == SYSTEM_ACTOR):
            raise InvalidTransition(
                f"{event.value} requires an identified operator",
                claim_id=claim_id,
                from_status=current,
                event=event.value,
            )
        return transition


# =============================================================================
# Status Helpers
# =============================================================================


def is_terminal_status(status: ClaimStatus) -> bool:
    """Check if status is terminal (no further transitions)."""
    return status in TERMINAL_STATUSES


def is_processing_status(status: ClaimStatus) -> bool:
    """Check if the pipeline can advance the claim without an operator."""
    return status in (
        ClaimStatus.RECEIVED,
        ClaimStatus.VALIDATED,
        ClaimStatus.PRICED,
    )


def get_status_display_name(status: ClaimStatus) -> str:
    """Get human-readable status name."""
    display_names = {
        ClaimStatus.RECEIVED: "Received",
        ClaimStatus.VALIDATED: "Validated",
        ClaimStatus.PRICED: "Priced",
        ClaimStatus.APPROVED: "Approved",
        ClaimStatus.DENIED: "Denied",
        ClaimStatus.PENDING_MANUAL_REVIEW: "Pending Manual Review",
        ClaimStatus.WITHDRAWN: "Withdrawn",
    }
    return display_names.get(status, status.value)


# =============================================================================
# Singleton Instance
# =============================================================================


_state_machine: Optional[ClaimStateMachine] = None


def get_claim_state_machine() -> ClaimStateMachine:
    """Get singleton state machine instance."""
    global _state_machine
    if _state_machine is None:
        _state_machine = ClaimStateMachine()
    return _state_machine

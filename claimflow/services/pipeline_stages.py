"""
Adjudication Pipeline Stages.

Each stage is a pure function from the current ``ClaimState`` plus its own
inputs to a ``StageResult``: the next state and the audit entry describing the
transition. Stages never touch locks, the ledger or the network; the
adjudication state machine composes them and commits their results.

Stage order:
    intake -> validation -> eligibility (+ pricing) -> decision
Operator-driven stages: review restart, withdrawal.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from claimflow.core.enums import SYSTEM_ACTOR, ReasonCode
from claimflow.schemas.audit import AuditEntry
from claimflow.schemas.claim import ClaimState, ClaimSubmission
from claimflow.schemas.eligibility import EligibilityCheck
from claimflow.services.claim_state_machine import (
    ClaimStateMachine,
    TransitionEvent,
    get_claim_state_machine,
)
from claimflow.services.pricing_engine import ClaimPricing

# Fields carried by the entry itself rather than its payload
ENTRY_FIELDS = frozenset({"status", "version", "updated_at"})


@dataclass(frozen=True)
class StageResult:
    """Next claim state and the audit entry recording the transition."""

    state: ClaimState
    entry: AuditEntry


def state_payload(previous: Optional[ClaimState], state: ClaimState) -> dict[str, Any]:
    """JSON form of the fields that changed between two snapshots."""
    before = previous.model_dump(mode="json") if previous else {}
    after = state.model_dump(mode="json")
    return {
        key: value
        for key, value in after.items()
        if key not in ENTRY_FIELDS and (key not in before or before[key] != value)
    }


def _advance(
    current: Optional[ClaimState],
    event: TransitionEvent,
    at: datetime,
    actor: str,
    claim_id: Optional[str] = None,
    machine: Optional[ClaimStateMachine] = None,
    **changes: Any,
) -> StageResult:
    """Apply a table transition to ``current`` and build its audit entry."""
    machine = machine or get_claim_state_machine()
    claim_id = current.claim_id if current else claim_id
    from_status = current.status if current else None
    transition = machine.require_transition(from_status, event, claim_id=claim_id, actor=actor)

    base = current or ClaimState(claim_id=claim_id)
    state = base.model_copy(
        update={
            **changes,
            "status": transition.to_status,
            "version": base.version + 1,
            "updated_at": at,
        }
    )
    entry = AuditEntry(
        claim_id=claim_id,
        from_status=from_status,
        to_status=transition.to_status,
        event=event.value,
        version=state.version,
        timestamp=at,
        actor=actor,
        payload=state_payload(current, state),
    )
    return StageResult(state=state, entry=entry)


# =============================================================================
# Pipeline Stages
# =============================================================================


def intake_stage(
    claim_id: str,
    at: datetime,
    actor: str = SYSTEM_ACTOR,
    current: Optional[ClaimState] = None,
) -> StageResult:
    """Record a new claim as Received (version 1); rejected if it already exists."""
    return _advance(current, TransitionEvent.SUBMIT, at, actor, claim_id=claim_id)


def validation_stage(
    state: ClaimState,
    submission: ClaimSubmission,
    at: datetime,
    actor: str = SYSTEM_ACTOR,
) -> StageResult:
    """Received -> Validated, or Denied with SchemaInvalid."""
    errors = submission.structural_errors()
    if errors:
        return _advance(
            state,
            TransitionEvent.VALIDATION_FAILED,
            at,
            actor,
            denial_reason=ReasonCode.SCHEMA_INVALID.value,
            validation_errors=tuple(f"{kind.value}: {message}" for kind, message in errors),
        )
    return _advance(state, TransitionEvent.VALIDATION_PASSED, at, actor)


def eligibility_stage(
    state: ClaimState,
    check: EligibilityCheck,
    pricing: Optional[ClaimPricing],
    at: datetime,
    actor: str = SYSTEM_ACTOR,
) -> StageResult:
    """
    Validated -> Priced, Denied or PendingManualReview.

    Args:
        state: Claim in Validated status
        check: Eligibility outcome after retries
        pricing: Line pricing; required when the member is covered
        at: Transition time
        actor: Who drives the transition
    """
    if not check.available:
        return _advance(
            state,
            TransitionEvent.ELIGIBILITY_UNAVAILABLE,
            at,
            actor,
            review_reason=ReasonCode.ELIGIBILITY_UNAVAILABLE.value,
            eligibility_attempts=check.attempts,
        )

    if not check.covered:
        return _advance(
            state,
            TransitionEvent.ELIGIBILITY_DENIED,
            at,
            actor,
            denial_reason=check.verdict.reason_code or ReasonCode.NOT_COVERED.value,
            eligibility_attempts=check.attempts,
        )

    if pricing is None:
        raise ValueError("Covered claims must be priced before leaving Validated")

    return _advance(
        state,
        TransitionEvent.ELIGIBILITY_COVERED,
        at,
        actor,
        pricing_results=pricing.results,
        flagged_lines=pricing.flagged,
        eligibility_attempts=check.attempts,
    )


def decision_stage(state: ClaimState, at: datetime, actor: str = SYSTEM_ACTOR) -> StageResult:
    """Priced -> Approved, or PendingManualReview when a line could not be priced."""
    if state.flagged_lines:
        return _advance(
            state,
            TransitionEvent.PRICING_INCOMPLETE,
            at,
            actor,
            review_reason=ReasonCode.UNKNOWN_PROCEDURE_CODE.value,
        )
    return _advance(state, TransitionEvent.PRICING_COMPLETE, at, actor)


def review_restart_stage(state: ClaimState, at: datetime, actor: str) -> StageResult:
    """PendingManualReview -> Validated, clearing the previous attempt's outcome."""
    return _advance(
        state,
        TransitionEvent.RESUME_REVIEW,
        at,
        actor,
        pricing_results=(),
        flagged_lines=(),
        review_reason=None,
        eligibility_attempts=0,
    )


def withdrawal_stage(
    state: ClaimState,
    at: datetime,
    actor: str,
    reason: Optional[str] = None,
) -> StageResult:
    """Any non-terminal status -> Withdrawn."""
    return _advance(
        state,
        TransitionEvent.WITHDRAW,
        at,
        actor,
        review_reason=None,
        withdrawal_reason=reason or "Withdrawn",
    )


# =============================================================================
# Reconstruction
# =============================================================================


def apply_entry(state: Optional[ClaimState], entry: AuditEntry) -> ClaimState:
    """Fold one audit entry onto a snapshot (inverse of ``state_payload``)."""
    data = state.model_dump(mode="json") if state else {"claim_id": entry.claim_id}
    data.update(entry.payload)
    data.update(
        status=entry.to_status,
        version=entry.version,
        updated_at=entry.timestamp,
    )
    return ClaimState.model_validate(data)

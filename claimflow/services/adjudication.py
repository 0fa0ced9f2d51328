"""
Claim Adjudication State Machine.

Drives claims through the adjudication lifecycle:
1. Intake - record the submission as Received
2. Validation - structural checks (Received -> Validated | Denied)
3. Eligibility - verdict with bounded retries, then line pricing
   (Validated -> Priced | Denied | PendingManualReview)
4. Decision - (Priced -> Approved | PendingManualReview)

Operators re-drive PendingManualReview claims with ``resume`` and may
``withdraw`` any claim that has not reached a terminal status.

Every transition is committed under the claim's lock: the stage runs against
the current snapshot, the audit entry is appended, and only then is the new
snapshot published. If the append fails, the visible state is unchanged.
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional
from uuid import uuid4

from claimflow.core.config import ClaimflowSettings, get_settings
from claimflow.core.enums import SYSTEM_ACTOR, ClaimStatus
from claimflow.schemas.audit import AuditEntry
from claimflow.schemas.claim import ClaimState, ClaimSubmission
from claimflow.schemas.eligibility import EligibilityCheck
from claimflow.services.audit_ledger import AuditLedger, InMemoryAuditLedger, create_audit_ledger
from claimflow.services.claim_locks import ClaimLockManager
from claimflow.services.claim_state_machine import (
    get_status_display_name,
    is_processing_status,
)
from claimflow.services.eligibility_gate import EligibilityGate, create_eligibility_gate
from claimflow.services.pipeline_stages import (
    StageResult,
    decision_stage,
    eligibility_stage,
    intake_stage,
    review_restart_stage,
    validation_stage,
    withdrawal_stage,
)
from claimflow.services.pricing_engine import PricingEngine
from claimflow.utils.errors import (
    ClaimNotFound,
    EligibilityUnavailable,
    InvalidTransition,
    ValidationError,
    VersionConflict,
)
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)

Stage = Callable[[Optional[ClaimState], datetime], StageResult]


def generate_claim_id() -> str:
    """New claim identifier."""
    return f"CLM-{uuid4().hex[:12].upper()}"


class AdjudicationStateMachine:
    """
    Adjudication pipeline composed behind the claim state machine.

    Owns every ClaimState; the audit ledger only records transitions.
    """

    def __init__(
        self,
        eligibility_gate: EligibilityGate,
        pricing_engine: Optional[PricingEngine] = None,
        ledger: Optional[AuditLedger] = None,
        lock_manager: Optional[ClaimLockManager] = None,
        settings: Optional[ClaimflowSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the state machine.

        Args:
            eligibility_gate: Gate in front of the eligibility provider
            pricing_engine: Line pricing engine (registry fee schedule by default)
            ledger: Audit ledger (in-memory by default)
            lock_manager: Per-claim lock manager
            settings: Retry and timeout settings
            clock: Source of transition timestamps (UTC)
            sleep: Coroutine used for retry backoff
        """
        self.settings = settings or get_settings()
        self.eligibility_gate = eligibility_gate
        self.pricing_engine = pricing_engine or PricingEngine()
        self.ledger = ledger or InMemoryAuditLedger()
        self.locks = lock_manager or ClaimLockManager(self.settings.CLAIM_LOCK_TIMEOUT_SECONDS)
        self.max_eligibility_attempts = self.settings.ELIGIBILITY_MAX_ATTEMPTS
        self.backoff_delays = self.settings.backoff_delays()

        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep or asyncio.sleep
        self._states: dict[str, ClaimState] = {}
        self._submissions: dict[str, ClaimSubmission] = {}

    async def initialize(self) -> None:
        await self.ledger.initialize()

    async def close(self) -> None:
        await self.eligibility_gate.provider.close()
        await self.ledger.close()

    # =========================================================================
    # Inbound Operations
    # =========================================================================

    async def submit(self, submission: ClaimSubmission, actor: str = SYSTEM_ACTOR) -> str:
        """
        Record a submission as Received.

        Returns:
            The claim identifier (assigned when the submission has none)

        Raises:
            InvalidTransition: if the claim identifier is already known
        """
        claim_id = submission.claim_id or generate_claim_id()
        if submission.claim_id is None:
            submission = submission.model_copy(update={"claim_id": claim_id})

        def store_submission() -> None:
            self._submissions[claim_id] = submission

        await self._commit(
            claim_id,
            lambda current, at: intake_stage(claim_id, at, actor, current=current),
            allow_new=True,
            on_commit=store_submission,
        )
        return claim_id

    async def adjudicate(self, claim_id: str, actor: str = SYSTEM_ACTOR) -> ClaimState:
        """
        Run the pipeline until the claim reaches a stable status.

        Raises:
            ClaimNotFound: if the claim is unknown
            InvalidTransition: if the claim is terminal or awaiting manual review
            VersionConflict: if another transition moved the claim mid-stage
            ClaimBusy: if the claim's lock could not be acquired in time
        """
        state = self.get_status(claim_id)
        if not is_processing_status(state.status):
            get_logger(__name__, claim_id=claim_id).warning(
                f"Claim {claim_id} in {get_status_display_name(state.status)} "
                "cannot be adjudicated"
            )
            raise InvalidTransition(
                f"Claim in status {state.status.value} cannot be adjudicated",
                claim_id=claim_id,
                from_status=state.status.value,
                event="adjudicate",
            )

        while is_processing_status(state.status):
            state = await self._step(state, actor)
        return state

    async def process(self, submission: ClaimSubmission, actor: str = SYSTEM_ACTOR) -> ClaimState:
        """Submit a claim and adjudicate it."""
        claim_id = await self.submit(submission, actor=actor)
        return await self.adjudicate(claim_id, actor=actor)

    def get_status(self, claim_id: str) -> ClaimState:
        """Read-only snapshot of a claim's current state."""
        state = self._states.get(claim_id)
        if state is None:
            raise ClaimNotFound(claim_id)
        return state

    def get_submission(self, claim_id: str) -> ClaimSubmission:
        """Submission currently being adjudicated for a claim."""
        submission = self._submissions.get(claim_id)
        if submission is None:
            raise ClaimNotFound(claim_id)
        return submission

    async def get_history(self, claim_id: str) -> list[AuditEntry]:
        """Audit entries for a claim in ascending version order."""
        entries = await self.ledger.history(claim_id)
        if not entries and claim_id not in self._states:
            raise ClaimNotFound(claim_id)
        return entries

    async def as_of(self, claim_id: str, timestamp: datetime) -> Optional[ClaimState]:
        """Claim state reconstructed from the ledger as of ``timestamp``."""
        return await self.ledger.as_of(claim_id, timestamp)

    async def withdraw(
        self,
        claim_id: str,
        actor: str,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ClaimState:
        """
        Withdraw a claim that has not reached a terminal status.

        Raises:
            InvalidTransition: if the claim is already terminal
            VersionConflict: if ``expected_version`` is stale
        """
        return await self._commit(
            claim_id,
            lambda current, at: withdrawal_stage(current, at, actor, reason),
            expected_version=expected_version,
        )

    async def resume(
        self,
        claim_id: str,
        actor: str,
        corrected: Optional[ClaimSubmission] = None,
        expected_version: Optional[int] = None,
        run_pipeline: bool = True,
    ) -> ClaimState:
        """
        Re-drive a claim out of manual review, restarting from Validated.

        The claim keeps its identifier and audit lineage. A corrected
        submission replaces the original one once the restart is committed.

        Args:
            claim_id: Claim awaiting manual review
            actor: Operator identifier (``system`` is rejected)
            corrected: Optional corrected submission
            expected_version: Version the operator reviewed
            run_pipeline: Continue adjudication after the restart

        Raises:
            ValidationError: if the corrected submission is malformed
            InvalidTransition: if the claim is not awaiting manual review
        """
        if corrected is not None:
            corrected = corrected.model_copy(update={"claim_id": claim_id})
            errors = corrected.structural_errors()
            if errors:
                raise ValidationError(
                    "Corrected submission is invalid",
                    claim_id=claim_id,
                    kind=errors[0][0].value,
                    errors=[f"{kind.value}: {message}" for kind, message in errors],
                )

        def store_correction() -> None:
            if corrected is not None:
                self._submissions[claim_id] = corrected

        state = await self._commit(
            claim_id,
            lambda current, at: review_restart_stage(current, at, actor),
            expected_version=expected_version,
            on_commit=store_correction,
        )
        if not run_pipeline:
            return state
        return await self.adjudicate(claim_id)

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _step(self, state: ClaimState, actor: str) -> ClaimState:
        """Advance a processing claim by one transition."""
        claim_id = state.claim_id
        submission = self.get_submission(claim_id)

        if state.status == ClaimStatus.RECEIVED:
            stage: Stage = lambda current, at: validation_stage(current, submission, at, actor)

        elif state.status == ClaimStatus.VALIDATED:
            # Provider I/O happens outside the claim lock; the commit below
            # fails with VersionConflict if the claim moved meanwhile
            check = await self.check_eligibility(submission)
            pricing = (
                self.pricing_engine.price_claim(submission.line_items) if check.covered else None
            )
            stage = lambda current, at: eligibility_stage(current, check, pricing, at, actor)

        else:
            stage = lambda current, at: decision_stage(current, at, actor)

        return await self._commit(claim_id, stage, expected_version=state.version)

    async def check_eligibility(self, submission: ClaimSubmission) -> EligibilityCheck:
        """
        Ask the eligibility gate with bounded retries and exponential backoff.

        Returns:
            EligibilityCheck with the verdict, or without one when every
            attempt reported EligibilityUnavailable
        """
        errors: list[str] = []
        max_attempts = self.max_eligibility_attempts
        log = get_logger(__name__, claim_id=submission.claim_id)

        for attempt in range(1, max_attempts + 1):
            try:
                verdict = await self.eligibility_gate.check(
                    submission.member_id,
                    submission.effective_service_date,
                    submitted_at=submission.submitted_at,
                    claim_id=submission.claim_id,
                )
                return EligibilityCheck(verdict=verdict, attempts=attempt, errors=tuple(errors))
            except EligibilityUnavailable as e:
                errors.append(e.message)
                if attempt < max_attempts:
                    delay = self.backoff_delays[attempt - 1]
                    log.warning(
                        f"Eligibility attempt {attempt}/{max_attempts} failed for claim "
                        f"{submission.claim_id}: {e.message}. Retrying in {delay:.1f}s..."
                    )
                    await self._sleep(delay)
                else:
                    log.error(
                        f"All {max_attempts} eligibility attempts failed for claim "
                        f"{submission.claim_id}. Last error: {e.message}"
                    )

        return EligibilityCheck(attempts=max_attempts, errors=tuple(errors))

    async def _commit(
        self,
        claim_id: str,
        stage: Stage,
        expected_version: Optional[int] = None,
        allow_new: bool = False,
        on_commit: Optional[Callable[[], None]] = None,
    ) -> ClaimState:
        """
        Run a stage and publish its result atomically with the audit append.

        Raises:
            ClaimBusy: if the claim's lock could not be acquired in time
            ClaimNotFound: if the claim is unknown and ``allow_new`` is False
            VersionConflict: if ``expected_version`` is stale or the ledger
                rejects the entry
            InvalidTransition: if the stage's transition is not allowed
        """
        log = get_logger(__name__, claim_id=claim_id)
        async with self.locks.hold(claim_id):
            current = self._states.get(claim_id)
            if current is None and not allow_new:
                raise ClaimNotFound(claim_id)

            actual_version = current.version if current else 0
            if expected_version is not None and expected_version != actual_version:
                log.warning(
                    f"Stale transition for claim {claim_id}: expected version "
                    f"{expected_version}, found {actual_version}"
                )
                raise VersionConflict(claim_id, expected_version, actual_version)

            try:
                result = stage(current, self._now(current))
            except InvalidTransition as e:
                log.warning(f"Transition rejected: {e}")
                raise

            await self.ledger.append(result.entry)
            self._states[claim_id] = result.state
            if on_commit is not None:
                on_commit()

        from_name = get_status_display_name(current.status) if current else "(new)"
        log.info(
            f"Claim {claim_id} transitioned: {from_name} -> "
            f"{get_status_display_name(result.state.status)} "
            f"(event: {result.entry.event}, version: {result.state.version}, "
            f"actor: {result.entry.actor})"
        )
        return result.state

    def _now(self, current: Optional[ClaimState]) -> datetime:
        """Transition timestamp, never earlier than the claim's last one."""
        now = self._clock()
        if current is not None and current.updated_at is not None and now < current.updated_at:
            return current.updated_at
        return now


# =============================================================================
# Factory Functions
# =============================================================================


def create_adjudication_state_machine(
    settings: Optional[ClaimflowSettings] = None,
) -> AdjudicationStateMachine:
    """Create a state machine wired from settings."""
    settings = settings or get_settings()
    return AdjudicationStateMachine(
        eligibility_gate=create_eligibility_gate(settings),
        ledger=create_audit_ledger(settings),
        lock_manager=ClaimLockManager(settings.CLAIM_LOCK_TIMEOUT_SECONDS),
        settings=settings,
    )

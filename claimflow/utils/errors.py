"""
Adjudication Exceptions
Error taxonomy surfaced by every pipeline operation.
"""

from typing import Any, Optional


class AdjudicationError(Exception):
    """Base exception for adjudication pipeline errors."""

    kind: str = "AdjudicationError"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        claim_id: Optional[str] = None,
        kind: Optional[str] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        self.claim_id = claim_id
        if kind is not None:
            self.kind = kind
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serializable view for callers deciding retry vs. abandonment."""
        return {
            "kind": self.kind,
            "claim_id": self.claim_id,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context,
        }

    def __str__(self) -> str:
        prefix = f"[{self.kind}]"
        if self.claim_id:
            prefix = f"{prefix} claim {self.claim_id}:"
        return f"{prefix} {self.message}"


class ValidationError(AdjudicationError):
    """Raised when a submission or an input is structurally invalid."""

    kind = "SchemaInvalid"

    def __init__(
        self,
        message: str,
        claim_id: Optional[str] = None,
        kind: str = "SchemaInvalid",
        errors: Optional[list[str]] = None,
        **context: Any,
    ):
        super().__init__(message, claim_id=claim_id, kind=kind, **context)
        self.errors = errors or [message]


class EligibilityUnavailable(AdjudicationError):
    """Raised when the eligibility provider times out or answers garbage."""

    kind = "EligibilityUnavailable"
    retryable = True


class UnknownProcedureCode(AdjudicationError):
    """Raised when a procedure code is absent from the fee schedule."""

    kind = "UnknownProcedureCode"

    def __init__(
        self,
        procedure_code: str,
        claim_id: Optional[str] = None,
        line_number: Optional[int] = None,
        **context: Any,
    ):
        super().__init__(
            f"Procedure code {procedure_code!r} is not in the fee schedule",
            claim_id=claim_id,
            procedure_code=procedure_code,
            line_number=line_number,
            **context,
        )
        self.procedure_code = procedure_code
        self.line_number = line_number


class InvalidTransition(AdjudicationError):
    """Raised when a transition is not allowed from the claim's status."""

    kind = "InvalidTransition"


class VersionConflict(AdjudicationError):
    """Raised when a write is based on a stale claim version."""

    kind = "VersionConflict"
    retryable = True

    def __init__(
        self,
        claim_id: str,
        expected_version: int,
        actual_version: int,
        **context: Any,
    ):
        super().__init__(
            f"Expected version {expected_version}, found {actual_version}",
            claim_id=claim_id,
            expected_version=expected_version,
            actual_version=actual_version,
            **context,
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class ClaimBusy(AdjudicationError):
    """Raised when the per-claim lock could not be acquired in time."""

    kind = "ClaimBusy"
    retryable = True

    def __init__(self, claim_id: str, timeout_seconds: float):
        super().__init__(
            f"Claim is locked by another transition (waited {timeout_seconds}s)",
            claim_id=claim_id,
            timeout_seconds=timeout_seconds,
        )
        self.timeout_seconds = timeout_seconds


class ClaimNotFound(AdjudicationError):
    """Raised when a claim identifier is unknown."""

    kind = "ClaimNotFound"

    def __init__(self, claim_id: str):
        super().__init__("Claim not found", claim_id=claim_id)

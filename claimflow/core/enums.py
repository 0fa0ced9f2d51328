"""
Core Enumerations for the Claims Adjudication Pipeline.
"""

from enum import Enum


# =============================================================================
# Claim Lifecycle Enums
# =============================================================================


class ClaimStatus(str, Enum):
    """Claim lifecycle status."""

    RECEIVED = "received"  # Initial: accepted at intake
    VALIDATED = "validated"  # Structurally well-formed
    PRICED = "priced"  # Covered and priced line by line
    APPROVED = "approved"  # Terminal
    DENIED = "denied"  # Terminal
    PENDING_MANUAL_REVIEW = "pending_manual_review"  # Stable, needs an operator
    WITHDRAWN = "withdrawn"  # Terminal


class ReasonCode(str, Enum):
    """Pipeline-issued reason codes for denials and manual review."""

    SCHEMA_INVALID = "SchemaInvalid"
    INVARIANT_VIOLATION = "InvariantViolation"
    NOT_COVERED = "NotCovered"  # Provider denied without its own code
    ELIGIBILITY_UNAVAILABLE = "EligibilityUnavailable"
    UNKNOWN_PROCEDURE_CODE = "UnknownProcedureCode"


class AuditBackend(str, Enum):
    """Storage backend for the audit ledger."""

    MEMORY = "memory"
    SQL = "sql"


SYSTEM_ACTOR = "system"

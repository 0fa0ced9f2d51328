"""
Pydantic Schemas for the Claims Adjudication Pipeline.
"""

from claimflow.schemas.audit import AuditEntry, AuditQuery
from claimflow.schemas.claim import (
    ClaimLineItem,
    ClaimState,
    ClaimSubmission,
    FlaggedLine,
    PricingResult,
)
from claimflow.schemas.eligibility import EligibilityCheck, EligibilityVerdict

__all__ = [
    "AuditEntry",
    "AuditQuery",
    "ClaimLineItem",
    "ClaimState",
    "ClaimSubmission",
    "FlaggedLine",
    "PricingResult",
    "EligibilityCheck",
    "EligibilityVerdict",
]

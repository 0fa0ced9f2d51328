"""
Core configuration and enumerations.
"""

from claimflow.core.config import ClaimflowSettings, get_settings
from claimflow.core.enums import SYSTEM_ACTOR, AuditBackend, ClaimStatus, ReasonCode

__all__ = [
    "ClaimflowSettings",
    "get_settings",
    "SYSTEM_ACTOR",
    "AuditBackend",
    "ClaimStatus",
    "ReasonCode",
]

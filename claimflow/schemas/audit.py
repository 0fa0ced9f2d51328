"""
Pydantic Schemas for the Claim Audit Ledger.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from claimflow.core.enums import SYSTEM_ACTOR, ClaimStatus


class AuditEntry(BaseModel):
    """
    Immutable record of one claim state transition.

    Ordered by (claim_id, version); versions start at 1 and have no gaps.
    ``payload`` holds the JSON form of the ClaimState fields the transition
    changed.
    """

    model_config = ConfigDict(frozen=True)

    claim_id: str
    from_status: Optional[ClaimStatus] = None
    to_status: ClaimStatus
    event: str
    version: int = Field(..., ge=1)
    timestamp: datetime
    actor: str = SYSTEM_ACTOR
    payload: dict[str, Any] = Field(default_factory=dict)


class AuditQuery(BaseModel):
    """Time-range query over the ledger."""

    claim_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    to_status: Optional[ClaimStatus] = None
    actor: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive bounds are interpreted as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def matches(self, entry: AuditEntry) -> bool:
        """Check whether an entry satisfies every set filter."""
        if self.claim_id is not None and entry.claim_id != self.claim_id:
            return False
        if self.start_time is not None and entry.timestamp < self.start_time:
            return False
        if self.end_time is not None and entry.timestamp > self.end_time:
            return False
        if self.to_status is not None and entry.to_status != self.to_status:
            return False
        if self.actor is not None and entry.actor != self.actor:
            return False
        return True

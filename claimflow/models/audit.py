"""
Claim Audit Entry Model.

One row per claim state transition. The (claim_id, version) unique constraint
is the storage-level guard against two writers recording the same version.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from claimflow.core.enums import ClaimStatus
from claimflow.models.base import Base
from claimflow.schemas.audit import AuditEntry


class AuditEntryRecord(Base):
    """Persisted audit entry."""

    __tablename__ = "claim_audit_entries"
    __table_args__ = (
        UniqueConstraint("claim_id", "version", name="uq_claim_audit_entries_claim_version"),
        Index("ix_claim_audit_entries_timestamp", "timestamp"),
    )

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing ID",
    )
    claim_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Claim identifier",
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Per-claim version, gap-free from 1",
    )
    from_status: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment="Status before the transition (null at intake)",
    )
    to_status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Status after the transition",
    )
    event: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Triggering event",
    )
    actor: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="system or operator identifier",
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the transition was committed (UTC)",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Changed ClaimState fields",
    )

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> "AuditEntryRecord":
        return cls(
            claim_id=entry.claim_id,
            version=entry.version,
            from_status=entry.from_status.value if entry.from_status else None,
            to_status=entry.to_status.value,
            event=entry.event,
            actor=entry.actor,
            timestamp=entry.timestamp.astimezone(timezone.utc),
            payload=entry.payload,
        )

    def to_entry(self) -> AuditEntry:
        timestamp = self.timestamp
        # SQLite hands back naive datetimes; everything is stored in UTC
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return AuditEntry(
            claim_id=self.claim_id,
            from_status=ClaimStatus(self.from_status) if self.from_status else None,
            to_status=ClaimStatus(self.to_status),
            event=self.event,
            version=self.version,
            timestamp=timestamp,
            actor=self.actor,
            payload=dict(self.payload or {}),
        )

    def __repr__(self) -> str:
        return f"<AuditEntryRecord {self.claim_id} v{self.version} {self.to_status}>"

"""
Claim Audit Ledger.

Append-only, versioned record of every claim state transition.

- ``append`` accepts an entry only when its version is exactly one greater than
  the last recorded version for the claim; anything else is a ``VersionConflict``.
- ``history`` returns a claim's entries in ascending version order.
- ``as_of`` rebuilds the ClaimState at a point in time by folding the history
  up to that timestamp.

Entries are never updated or deleted.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from itertools import takewhile
from typing import Optional

from claimflow.schemas.audit import AuditEntry, AuditQuery
from claimflow.schemas.claim import ClaimState
from claimflow.services.pipeline_stages import apply_entry
from claimflow.utils.errors import VersionConflict
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AuditLedger(ABC):
    """Logical contract shared by every ledger backend."""

    async def initialize(self) -> None:
        """Prepare backend storage."""
        return None

    async def close(self) -> None:
        """Release backend resources."""
        return None

    @abstractmethod
    async def append(self, entry: AuditEntry) -> None:
        """
        Append an entry.

        Raises:
            VersionConflict: if ``entry.version`` is not last version + 1
        """
        pass

    @abstractmethod
    async def history(self, claim_id: str) -> list[AuditEntry]:
        """All entries for a claim in ascending version order."""
        pass

    @abstractmethod
    async def query(self, query: AuditQuery) -> list[AuditEntry]:
        """Entries matching a query, ordered by timestamp then version."""
        pass

    async def last_version(self, claim_id: str) -> int:
        """Last recorded version for a claim (0 when none)."""
        entries = await self.history(claim_id)
        return entries[-1].version if entries else 0

    async def entries_between(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        claim_id: Optional[str] = None,
    ) -> list[AuditEntry]:
        """Entries with ``start <= timestamp <= end``, optionally for one claim."""
        return await self.query(
            AuditQuery(
                claim_id=claim_id,
                start_time=ensure_utc(start) if start else None,
                end_time=ensure_utc(end) if end else None,
            )
        )

    async def as_of(self, claim_id: str, timestamp: datetime) -> Optional[ClaimState]:
        """
        Reconstruct a claim's state as of a point in time.

        Returns:
            ClaimState, or None if the claim had not been received yet
        """
        cutoff = ensure_utc(timestamp)
        state: Optional[ClaimState] = None
        for entry in takewhile(lambda e: e.timestamp <= cutoff, await self.history(claim_id)):
            state = apply_entry(state, entry)
        return state

    @staticmethod
    def check_next_version(entry: AuditEntry, last_version: int) -> None:
        """Reject entries that would leave a gap or overwrite a version."""
        if entry.version != last_version + 1:
            raise VersionConflict(
                entry.claim_id,
                expected_version=last_version + 1,
                actual_version=entry.version,
            )


class InMemoryAuditLedger(AuditLedger):
    """Process-local ledger backed by per-claim lists."""

    def __init__(self) -> None:
        self._entries: dict[str, list[AuditEntry]] = {}
        self._count = 0

    def __len__(self) -> int:
        return self._count

    async def append(self, entry: AuditEntry) -> None:
        claim_entries = self._entries.setdefault(entry.claim_id, [])
        last_version = claim_entries[-1].version if claim_entries else 0
        self.check_next_version(entry, last_version)

        stored = entry.model_copy(update={"timestamp": ensure_utc(entry.timestamp)})
        claim_entries.append(stored)
        self._count += 1
        logger.debug(f"Audit entry appended: claim={entry.claim_id} version={entry.version}")

    async def history(self, claim_id: str) -> list[AuditEntry]:
        return list(self._entries.get(claim_id, ()))

    async def last_version(self, claim_id: str) -> int:
        claim_entries = self._entries.get(claim_id)
        return claim_entries[-1].version if claim_entries else 0

    async def query(self, query: AuditQuery) -> list[AuditEntry]:
        if query.claim_id is not None:
            candidates = self._entries.get(query.claim_id, [])
        else:
            candidates = [e for entries in self._entries.values() for e in entries]
        matches = [e for e in candidates if query.matches(e)]
        return sorted(matches, key=lambda e: (e.timestamp, e.claim_id, e.version))


def create_audit_ledger(settings=None) -> AuditLedger:  # type: ignore[no-untyped-def]
    """Create the configured ledger backend."""
    from claimflow.core.config import get_settings
    from claimflow.core.enums import AuditBackend

    settings = settings or get_settings()
    if settings.AUDIT_BACKEND == AuditBackend.SQL:
        from claimflow.db.connection import create_ledger_engine
        from claimflow.services.sql_audit_ledger import SqlAuditLedger

        engine = create_ledger_engine(
            settings.AUDIT_DATABASE_URL, echo=settings.AUDIT_DATABASE_ECHO
        )
        return SqlAuditLedger(engine)
    return InMemoryAuditLedger()

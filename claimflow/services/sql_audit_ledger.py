"""
SQL-backed Claim Audit Ledger.

Persists audit entries through SQLAlchemy's async ORM. The version check and
the insert run in one transaction; the (claim_id, version) unique constraint
catches writers that raced past the check.
"""

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from claimflow.db.connection import create_session_maker, create_tables
from claimflow.models.audit import AuditEntryRecord
from claimflow.schemas.audit import AuditEntry, AuditQuery
from claimflow.services.audit_ledger import AuditLedger
from claimflow.utils.errors import VersionConflict
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


class SqlAuditLedger(AuditLedger):
    """Audit ledger stored in a relational database."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_maker = create_session_maker(engine)

    async def initialize(self) -> None:
        await create_tables(self.engine)

    async def close(self) -> None:
        await self.engine.dispose()

    async def append(self, entry: AuditEntry) -> None:
        async with self._session_maker() as session:
            try:
                async with session.begin():
                    last_version = await session.scalar(
                        select(func.max(AuditEntryRecord.version)).where(
                            AuditEntryRecord.claim_id == entry.claim_id
                        )
                    )
                    self.check_next_version(entry, last_version or 0)
                    session.add(AuditEntryRecord.from_entry(entry))
            except IntegrityError as e:
                integrity_error = e
            else:
                return

        # Another writer recorded this version after our check
        last_version = await self.last_version(entry.claim_id)
        logger.warning(
            f"Concurrent audit write for claim {entry.claim_id} "
            f"version {entry.version}; last recorded version is {last_version}"
        )
        raise VersionConflict(
            entry.claim_id,
            expected_version=last_version + 1,
            actual_version=entry.version,
        ) from integrity_error

    async def history(self, claim_id: str) -> list[AuditEntry]:
        async with self._session_maker() as session:
            result = await session.scalars(
                select(AuditEntryRecord)
                .where(AuditEntryRecord.claim_id == claim_id)
                .order_by(AuditEntryRecord.version)
            )
            return [record.to_entry() for record in result]

    async def last_version(self, claim_id: str) -> int:
        async with self._session_maker() as session:
            last_version = await session.scalar(
                select(func.max(AuditEntryRecord.version)).where(
                    AuditEntryRecord.claim_id == claim_id
                )
            )
            return last_version or 0

    async def query(self, query: AuditQuery) -> list[AuditEntry]:
        stmt = select(AuditEntryRecord)
        if query.claim_id is not None:
            stmt = stmt.where(AuditEntryRecord.claim_id == query.claim_id)
        if query.to_status is not None:
            stmt = stmt.where(AuditEntryRecord.to_status == query.to_status.value)
        if query.actor is not None:
            stmt = stmt.where(AuditEntryRecord.actor == query.actor)
        stmt = stmt.order_by(
            AuditEntryRecord.timestamp,
            AuditEntryRecord.claim_id,
            AuditEntryRecord.version,
        )

        async with self._session_maker() as session:
            result = await session.scalars(stmt)
            entries = [record.to_entry() for record in result]

        # Time bounds are applied on normalized UTC values; SQLite stores
        # naive datetimes
        return [e for e in entries if query.matches(e)]

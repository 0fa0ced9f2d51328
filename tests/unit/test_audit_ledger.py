"""
Audit Ledger Tests.
Tests append-only versioning, queries and point-in-time reconstruction
against the in-memory and SQL backends.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from claimflow.core.enums import ClaimStatus
from claimflow.db.connection import create_ledger_engine
from claimflow.schemas.audit import AuditEntry, AuditQuery
from claimflow.services.audit_ledger import InMemoryAuditLedger, ensure_utc
from claimflow.services.sql_audit_ledger import SqlAuditLedger
from claimflow.utils.errors import VersionConflict

T0 = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

LIFECYCLE = [
    (None, ClaimStatus.RECEIVED, "submit", {}),
    (ClaimStatus.RECEIVED, ClaimStatus.VALIDATED, "validation_passed", {}),
    (
        ClaimStatus.VALIDATED,
        ClaimStatus.PENDING_MANUAL_REVIEW,
        "eligibility_unavailable",
        {"review_reason": "EligibilityUnavailable", "eligibility_attempts": 3},
    ),
    (
        ClaimStatus.PENDING_MANUAL_REVIEW,
        ClaimStatus.WITHDRAWN,
        "withdraw",
        {"review_reason": None, "withdrawal_reason": "Duplicate"},
    ),
]


def make_entry(claim_id="CLM-1", version=1, seconds=0, to_status=ClaimStatus.RECEIVED,
               from_status=None, event="submit", actor="system", payload=None):
    return AuditEntry(
        claim_id=claim_id,
        from_status=from_status,
        to_status=to_status,
        event=event,
        version=version,
        timestamp=T0 + timedelta(seconds=seconds),
        actor=actor,
        payload=payload or {},
    )


def lifecycle_entries(claim_id="CLM-1"):
    return [
        make_entry(
            claim_id=claim_id,
            version=i,
            seconds=i * 10,
            from_status=from_status,
            to_status=to_status,
            event=event,
            actor="reviewer" if event == "withdraw" else "system",
            payload=payload,
        )
        for i, (from_status, to_status, event, payload) in enumerate(LIFECYCLE, start=1)
    ]


@pytest_asyncio.fixture(params=["memory", "sql"])
async def audit_ledger(request, tmp_path):
    """Each ledger backend, initialized and closed around the test."""
    if request.param == "memory":
        ledger = InMemoryAuditLedger()
    else:
        engine = create_ledger_engine(f"sqlite+aiosqlite:///{tmp_path}/audit.db")
        ledger = SqlAuditLedger(engine)
    await ledger.initialize()
    yield ledger
    await ledger.close()


class TestAppend:
    """Tests for append-only versioning."""

    @pytest.mark.asyncio
    async def test_append_and_history(self, audit_ledger):
        for entry in lifecycle_entries():
            await audit_ledger.append(entry)

        history = await audit_ledger.history("CLM-1")

        assert [e.version for e in history] == [1, 2, 3, 4]
        assert [e.to_status for e in history] == [s for _, s, _, _ in LIFECYCLE]
        assert history[2].payload["eligibility_attempts"] == 3
        assert await audit_ledger.last_version("CLM-1") == 4

    @pytest.mark.asyncio
    async def test_first_version_must_be_one(self, audit_ledger):
        with pytest.raises(VersionConflict) as exc_info:
            await audit_ledger.append(make_entry(version=2))

        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2

    @pytest.mark.asyncio
    async def test_gap_rejected(self, audit_ledger):
        await audit_ledger.append(make_entry(version=1))

        with pytest.raises(VersionConflict):
            await audit_ledger.append(make_entry(version=3, seconds=5))

        assert await audit_ledger.last_version("CLM-1") == 1

    @pytest.mark.asyncio
    async def test_duplicate_version_rejected(self, audit_ledger):
        await audit_ledger.append(make_entry(version=1))

        with pytest.raises(VersionConflict):
            await audit_ledger.append(make_entry(version=1, seconds=5))

        assert len(await audit_ledger.history("CLM-1")) == 1

    @pytest.mark.asyncio
    async def test_duplicate_version_reports_next_version(self, audit_ledger):
        await audit_ledger.append(make_entry(version=1))

        with pytest.raises(VersionConflict) as exc_info:
            await audit_ledger.append(make_entry(version=1, seconds=5))

        assert exc_info.value.expected_version == 2
        assert exc_info.value.actual_version == 1

    @pytest.mark.asyncio
    async def test_claims_are_independent(self, audit_ledger):
        await audit_ledger.append(make_entry(claim_id="CLM-1"))
        await audit_ledger.append(make_entry(claim_id="CLM-2"))

        assert await audit_ledger.last_version("CLM-2") == 1
        assert await audit_ledger.history("CLM-3") == []
        assert await audit_ledger.last_version("CLM-3") == 0

    @pytest.mark.asyncio
    async def test_timestamps_come_back_in_utc(self, audit_ledger):
        local = timezone(timedelta(hours=-5))
        entry = make_entry().model_copy(update={"timestamp": datetime(2024, 3, 1, 5, 0, tzinfo=local)})

        await audit_ledger.append(entry)

        stored = (await audit_ledger.history("CLM-1"))[0]
        assert stored.timestamp == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
        assert stored.timestamp.utcoffset() == timedelta(0)


class UncheckedSqlAuditLedger(SqlAuditLedger):
    """SQL ledger whose writer skips the version read, as a racing writer would."""

    @staticmethod
    def check_next_version(entry, last_version):
        pass


class TestSqlUniqueVersion:
    """Tests for the unique (claim_id, version) constraint."""

    @pytest.mark.asyncio
    async def test_constraint_conflict_reports_next_version(self, tmp_path):
        ledger = UncheckedSqlAuditLedger(
            create_ledger_engine(f"sqlite+aiosqlite:///{tmp_path}/audit.db")
        )
        await ledger.initialize()
        try:
            await ledger.append(make_entry(version=1))

            with pytest.raises(VersionConflict) as exc_info:
                await ledger.append(make_entry(version=1, seconds=5))

            assert exc_info.value.expected_version == 2
            assert exc_info.value.actual_version == 1
            assert len(await ledger.history("CLM-1")) == 1
        finally:
            await ledger.close()


class TestQueries:
    """Tests for time-range queries."""

    @pytest.mark.asyncio
    async def test_entries_between(self, audit_ledger):
        for entry in lifecycle_entries("CLM-1") + lifecycle_entries("CLM-2"):
            await audit_ledger.append(entry)

        entries = await audit_ledger.entries_between(T0 + timedelta(seconds=15), T0 + timedelta(seconds=30))

        assert [(e.claim_id, e.version) for e in entries] == [
            ("CLM-1", 2),
            ("CLM-2", 2),
            ("CLM-1", 3),
            ("CLM-2", 3),
        ]

    @pytest.mark.asyncio
    async def test_entries_between_naive_bounds(self, audit_ledger):
        for entry in lifecycle_entries():
            await audit_ledger.append(entry)

        entries = await audit_ledger.entries_between(
            datetime(2024, 3, 1, 10, 0, 40), claim_id="CLM-1"
        )

        assert [e.version for e in entries] == [4]

    @pytest.mark.asyncio
    async def test_query_by_actor_and_status(self, audit_ledger):
        for entry in lifecycle_entries():
            await audit_ledger.append(entry)

        by_actor = await audit_ledger.query(AuditQuery(actor="reviewer"))
        by_status = await audit_ledger.query(AuditQuery(to_status=ClaimStatus.VALIDATED))

        assert [e.event for e in by_actor] == ["withdraw"]
        assert [e.version for e in by_status] == [2]


class TestAsOf:
    """Tests for point-in-time reconstruction."""

    @pytest.mark.asyncio
    async def test_before_intake(self, audit_ledger):
        for entry in lifecycle_entries():
            await audit_ledger.append(entry)

        assert await audit_ledger.as_of("CLM-1", T0 - timedelta(seconds=1)) is None

    @pytest.mark.asyncio
    async def test_between_transitions(self, audit_ledger):
        for entry in lifecycle_entries():
            await audit_ledger.append(entry)

        state = await audit_ledger.as_of("CLM-1", T0 + timedelta(seconds=35))

        assert state.status == ClaimStatus.PENDING_MANUAL_REVIEW
        assert state.version == 3
        assert state.reason == "EligibilityUnavailable"
        assert state.eligibility_attempts == 3

    @pytest.mark.asyncio
    async def test_at_exact_timestamp(self, audit_ledger):
        for entry in lifecycle_entries():
            await audit_ledger.append(entry)

        state = await audit_ledger.as_of("CLM-1", T0 + timedelta(seconds=40))

        assert state.status == ClaimStatus.WITHDRAWN
        assert state.version == 4
        assert state.review_reason is None
        assert state.reason == "Duplicate"


def test_ensure_utc():
    naive = datetime(2024, 3, 1, 10, 0)
    aware = datetime(2024, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))

    assert ensure_utc(naive) == T0
    assert ensure_utc(aware).tzinfo == timezone.utc
    assert ensure_utc(aware) == T0

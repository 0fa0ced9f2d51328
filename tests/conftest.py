"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from claimflow.core.config import ClaimflowSettings
from claimflow.schemas.claim import ClaimLineItem, ClaimSubmission
from claimflow.services.adjudication import AdjudicationStateMachine
from claimflow.services.audit_ledger import InMemoryAuditLedger
from claimflow.services.claim_locks import ClaimLockManager
from claimflow.services.eligibility_gate import EligibilityGate, StaticEligibilityProvider
from claimflow.services.fee_schedule import FeeSchedule, FeeScheduleRegistry
from claimflow.services.pricing_engine import PricingEngine

SUBMITTED_AT = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


class StepClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime = SUBMITTED_AT):
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def settings():
    """Settings with fast retries and short lock waits."""
    return ClaimflowSettings(
        ELIGIBILITY_TIMEOUT_SECONDS=0.05,
        ELIGIBILITY_MAX_ATTEMPTS=3,
        ELIGIBILITY_BACKOFF_SECONDS=0,
        CLAIM_LOCK_TIMEOUT_SECONDS=0.05,
        _env_file=None,
    )


@pytest.fixture
def fee_schedule():
    """Small fee schedule for pricing tests."""
    return FeeSchedule.from_amounts(
        {"99213": "100.00", "99214": "120.00", "36415": "5.00"},
        name="test",
    )


@pytest.fixture
def fee_registry(fee_schedule):
    return FeeScheduleRegistry(fee_schedule)


@pytest.fixture
def pricing_engine(fee_registry):
    return PricingEngine(registry=fee_registry)


@pytest.fixture
def eligibility_provider():
    """Roster with one covered and one denied member."""
    return StaticEligibilityProvider(
        covered_members={"M-100"},
        denied_members={"M-200": "CoverageTerminated"},
    )


@pytest.fixture
def eligibility_gate(eligibility_provider):
    return EligibilityGate(eligibility_provider, timeout_seconds=0.05)


@pytest.fixture
def ledger():
    return InMemoryAuditLedger()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def adjudicator(eligibility_gate, pricing_engine, ledger, settings, clock):
    """State machine wired with in-memory collaborators."""
    return AdjudicationStateMachine(
        eligibility_gate=eligibility_gate,
        pricing_engine=pricing_engine,
        ledger=ledger,
        lock_manager=ClaimLockManager(settings.CLAIM_LOCK_TIMEOUT_SECONDS),
        settings=settings,
        clock=clock,
        sleep=no_sleep,
    )


@pytest.fixture
def make_submission():
    """Factory for claim submissions."""

    def _make(
        member_id: str = "M-100",
        lines=None,
        claim_id=None,
        service_date: date = date(2024, 2, 28),
    ) -> ClaimSubmission:
        if lines is None:
            lines = [
                ClaimLineItem(
                    procedure_code="99213",
                    billed_amount=Decimal("100.00"),
                    copay_pct=Decimal("0.20"),
                    coinsurance_pct=Decimal("0.10"),
                )
            ]
        return ClaimSubmission(
            claim_id=claim_id,
            member_id=member_id,
            line_items=tuple(lines),
            submitted_at=SUBMITTED_AT,
            service_date=service_date,
        )

    return _make


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )

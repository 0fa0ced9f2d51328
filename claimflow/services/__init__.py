"""
Services Layer for Claims Adjudication.

Exports the adjudication state machine, its pipeline components and the
audit ledgers.
"""

from claimflow.services.adjudication import (
    AdjudicationStateMachine,
    create_adjudication_state_machine,
    generate_claim_id,
)
from claimflow.services.audit_ledger import (
    AuditLedger,
    InMemoryAuditLedger,
    create_audit_ledger,
)
from claimflow.services.claim_locks import ClaimLockManager
from claimflow.services.claim_state_machine import (
    ClaimStateMachine,
    Transition,
    TransitionEvent,
    get_claim_state_machine,
)
from claimflow.services.eligibility_gate import (
    EligibilityGate,
    EligibilityProvider,
    HttpEligibilityProvider,
    StaticEligibilityProvider,
    create_eligibility_gate,
)
from claimflow.services.fee_schedule import (
    FeeSchedule,
    FeeScheduleEntry,
    FeeScheduleRegistry,
    get_fee_schedule_registry,
)
from claimflow.services.pricing_engine import ClaimPricing, PricingEngine
from claimflow.services.sql_audit_ledger import SqlAuditLedger

__all__ = [
    # Adjudication
    "AdjudicationStateMachine",
    "create_adjudication_state_machine",
    "generate_claim_id",
    # Audit ledger
    "AuditLedger",
    "InMemoryAuditLedger",
    "SqlAuditLedger",
    "create_audit_ledger",
    # Concurrency
    "ClaimLockManager",
    # State machine
    "ClaimStateMachine",
    "Transition",
    "TransitionEvent",
    "get_claim_state_machine",
    # Eligibility
    "EligibilityGate",
    "EligibilityProvider",
    "HttpEligibilityProvider",
    "StaticEligibilityProvider",
    "create_eligibility_gate",
    # Pricing
    "FeeSchedule",
    "FeeScheduleEntry",
    "FeeScheduleRegistry",
    "get_fee_schedule_registry",
    "ClaimPricing",
    "PricingEngine",
]

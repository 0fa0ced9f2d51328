"""
Claim Line Pricing Engine.

Prices each claim line against the fee schedule:
- allowed = min(billed, fee schedule amount)
- patient responsibility = round(allowed * (copay + coinsurance), 2, HALF_EVEN)
- payer responsibility = allowed - patient responsibility

Payer responsibility is always derived by subtraction so that patient + payer
equals the allowed amount exactly. Lines are priced independently; claim totals
are plain sums of line results.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from claimflow.core.enums import ReasonCode
from claimflow.schemas.claim import ClaimLineItem, FlaggedLine, PricingResult
from claimflow.services.fee_schedule import (
    FeeSchedule,
    FeeScheduleRegistry,
    get_fee_schedule_registry,
)
from claimflow.utils.errors import UnknownProcedureCode, ValidationError
from claimflow.utils.logging import get_logger
from claimflow.utils.money import sum_money, to_money

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClaimPricing:
    """Pricing outcome for every line of a claim."""

    results: tuple[PricingResult, ...] = ()
    flagged: tuple[FlaggedLine, ...] = ()
    fee_schedule_name: Optional[str] = None

    @property
    def complete(self) -> bool:
        """True when every line was priced."""
        return not self.flagged

    @property
    def total_allowed(self) -> Decimal:
        return sum_money(r.allowed_amount for r in self.results)

    @property
    def total_patient_responsibility(self) -> Decimal:
        return sum_money(r.patient_responsibility for r in self.results)

    @property
    def total_payer_responsibility(self) -> Decimal:
        return sum_money(r.payer_responsibility for r in self.results)


@dataclass
class PricingEngine:
    """Pure pricing over a read-only fee schedule."""

    registry: FeeScheduleRegistry = field(default_factory=get_fee_schedule_registry)

    def price(
        self,
        line: ClaimLineItem,
        schedule: Optional[FeeSchedule] = None,
    ) -> PricingResult:
        """
        Price a single claim line.

        Args:
            line: Line item to price
            schedule: Schedule snapshot; the registry's current one when omitted

        Returns:
            PricingResult with allowed, patient and payer amounts

        Raises:
            ValidationError: if the line breaks a line invariant
            UnknownProcedureCode: if the procedure code is not in the schedule
        """
        problems = line.invariant_violations()
        if problems:
            raise ValidationError(
                problems[0],
                kind=ReasonCode.INVARIANT_VIOLATION.value,
                errors=problems,
            )

        schedule = schedule or self.registry.current()
        try:
            fee_amount = schedule.lookup(line.procedure_code)
        except UnknownProcedureCode as e:
            raise UnknownProcedureCode(
                line.procedure_code, line_number=line.line_number
            ) from e

        billed = to_money(line.billed_amount)
        allowed = min(billed, fee_amount)
        patient = to_money(allowed * line.cost_share_pct)
        payer = allowed - patient

        return PricingResult(
            line_number=line.line_number or 1,
            procedure_code=line.procedure_code,
            billed_amount=billed,
            allowed_amount=allowed,
            patient_responsibility=patient,
            payer_responsibility=payer,
        )

    def price_claim(self, lines: Iterable[ClaimLineItem]) -> ClaimPricing:
        """
        Price every line of a claim against one schedule snapshot.

        Lines with unknown procedure codes are flagged for manual pricing
        instead of being defaulted.
        """
        schedule = self.registry.current()
        results: list[PricingResult] = []
        flagged: list[FlaggedLine] = []

        for line in lines:
            try:
                results.append(self.price(line, schedule))
            except UnknownProcedureCode as e:
                logger.warning(
                    f"Line {line.line_number} flagged for manual pricing: {e.message}"
                )
                flagged.append(
                    FlaggedLine(
                        line_number=line.line_number or 1,
                        procedure_code=line.procedure_code,
                    )
                )

        return ClaimPricing(
            results=tuple(results),
            flagged=tuple(flagged),
            fee_schedule_name=schedule.name,
        )

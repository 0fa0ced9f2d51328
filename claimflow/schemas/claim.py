"""
Pydantic Schemas for Claim Submissions and Claim State.

Submissions and line items are immutable once accepted. ``ClaimState`` is the
lifecycle record; every committed transition replaces the snapshot instead of
mutating it.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from claimflow.core.enums import ClaimStatus, ReasonCode
from claimflow.utils.money import MAX_AMOUNT, is_cent_amount, sum_money

ONE = Decimal("1")


class ClaimLineItem(BaseModel):
    """A single billed service on a claim."""

    model_config = ConfigDict(frozen=True)

    line_number: Optional[int] = Field(None, ge=1, description="1-based line position")
    procedure_code: str = Field(..., description="CPT/HCPCS procedure code")
    billed_amount: Decimal = Field(..., description="Amount billed by the provider")
    copay_pct: Decimal = Field(Decimal("0"), description="Copay share (0-1)")
    coinsurance_pct: Decimal = Field(Decimal("0"), description="Coinsurance share (0-1)")

    @property
    def cost_share_pct(self) -> Decimal:
        """Combined patient cost-share percentage."""
        return self.copay_pct + self.coinsurance_pct

    def invariant_violations(self) -> list[str]:
        """Return human-readable invariant failures for this line."""
        label = f"line {self.line_number}" if self.line_number else "line"
        problems = []

        if not self.procedure_code or not self.procedure_code.strip():
            problems.append(f"{label}: procedure code is required")
        if not is_cent_amount(self.billed_amount):
            problems.append(
                f"{label}: billed amount must be a non-negative amount in cents "
                f"no greater than {MAX_AMOUNT}"
            )

        for name, pct in (("copay", self.copay_pct), ("coinsurance", self.coinsurance_pct)):
            if not pct.is_finite() or pct < 0 or pct > ONE:
                problems.append(f"{label}: {name} percentage must be between 0 and 1")

        if self.copay_pct.is_finite() and self.coinsurance_pct.is_finite():
            if self.cost_share_pct > ONE:
                problems.append(
                    f"{label}: copay + coinsurance ({self.cost_share_pct}) exceeds 1"
                )
        return problems


class ClaimSubmission(BaseModel):
    """A claim as received at intake."""

    model_config = ConfigDict(frozen=True)

    claim_id: Optional[str] = Field(None, description="Assigned at intake when absent")
    member_id: str = Field(..., description="External member reference")
    line_items: tuple[ClaimLineItem, ...] = Field(default_factory=tuple)
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    service_date: Optional[date] = Field(
        None, description="Date of service; defaults to the submission date"
    )

    @field_validator("line_items")
    @classmethod
    def number_lines(cls, v: tuple[ClaimLineItem, ...]) -> tuple[ClaimLineItem, ...]:
        """Assign sequential line numbers to lines submitted without one."""
        return tuple(
            item if item.line_number is not None else item.model_copy(update={"line_number": i})
            for i, item in enumerate(v, start=1)
        )

    @property
    def effective_service_date(self) -> date:
        return self.service_date or self.submitted_at.date()

    def structural_errors(self) -> list[tuple[ReasonCode, str]]:
        """
        Check the Received -> Validated guard.

        Returns:
            (kind, message) pairs; empty when the submission is well-formed
        """
        errors: list[tuple[ReasonCode, str]] = []

        if not self.member_id or not self.member_id.strip():
            errors.append((ReasonCode.SCHEMA_INVALID, "member id is required"))
        if not self.line_items:
            errors.append((ReasonCode.SCHEMA_INVALID, "claim has no line items"))
        if self.effective_service_date > self.submitted_at.date():
            errors.append(
                (ReasonCode.SCHEMA_INVALID, "service date is after the submission date")
            )

        seen: set[int] = set()
        for item in self.line_items:
            if item.line_number in seen:
                errors.append(
                    (ReasonCode.SCHEMA_INVALID, f"duplicate line number {item.line_number}")
                )
            seen.add(item.line_number)
            errors.extend(
                (ReasonCode.INVARIANT_VIOLATION, message)
                for message in item.invariant_violations()
            )
        return errors


class PricingResult(BaseModel):
    """Priced amounts for one claim line."""

    model_config = ConfigDict(frozen=True)

    line_number: int
    procedure_code: str
    billed_amount: Decimal
    allowed_amount: Decimal
    patient_responsibility: Decimal
    payer_responsibility: Decimal


class FlaggedLine(BaseModel):
    """A claim line that needs manual pricing."""

    model_config = ConfigDict(frozen=True)

    line_number: int
    procedure_code: str
    reason: str = ReasonCode.UNKNOWN_PROCEDURE_CODE.value


class ClaimState(BaseModel):
    """Lifecycle record of a claim, replaced on every transition."""

    model_config = ConfigDict(frozen=True)

    claim_id: str
    status: ClaimStatus = ClaimStatus.RECEIVED
    pricing_results: tuple[PricingResult, ...] = ()
    flagged_lines: tuple[FlaggedLine, ...] = ()
    denial_reason: Optional[str] = None
    review_reason: Optional[str] = None
    withdrawal_reason: Optional[str] = None
    validation_errors: tuple[str, ...] = ()
    eligibility_attempts: int = 0
    version: int = 0
    updated_at: Optional[datetime] = None

    @property
    def reason(self) -> Optional[str]:
        """Explanation for the current status, if it carries one."""
        if self.status == ClaimStatus.DENIED:
            return self.denial_reason
        if self.status == ClaimStatus.PENDING_MANUAL_REVIEW:
            return self.review_reason
        if self.status == ClaimStatus.WITHDRAWN:
            return self.withdrawal_reason
        return None

    @property
    def total_allowed(self) -> Decimal:
        return sum_money(r.allowed_amount for r in self.pricing_results)

    @property
    def total_patient_responsibility(self) -> Decimal:
        return sum_money(r.patient_responsibility for r in self.pricing_results)

    @property
    def total_payer_responsibility(self) -> Decimal:
        return sum_money(r.payer_responsibility for r in self.pricing_results)

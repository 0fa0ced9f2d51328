"""
Pydantic Schemas for Eligibility Verdicts.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class EligibilityVerdict(BaseModel):
    """Resolved coverage verdict for a member on a service date."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    covered: bool = Field(..., strict=True, description="Coverage active for the date")
    reason_code: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("reason_code", "reasonCode"),
        description="Payer reason code when not covered",
    )


class EligibilityCheck(BaseModel):
    """Outcome of an eligibility check including retries."""

    model_config = ConfigDict(frozen=True)

    verdict: Optional[EligibilityVerdict] = None
    attempts: int = 0
    errors: tuple[str, ...] = ()

    @property
    def available(self) -> bool:
        """Whether a verdict was obtained within the retry budget."""
        return self.verdict is not None

    @property
    def covered(self) -> bool:
        return self.verdict is not None and self.verdict.covered

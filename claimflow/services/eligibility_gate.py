"""
Eligibility Gate.

Asks an external verdict provider whether a member's coverage is active on a
service date and translates the answer into an ``EligibilityVerdict``.

Provider failures (timeout, transport error, malformed response) surface as
``EligibilityUnavailable``. They are never treated as a coverage denial.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Mapping, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from claimflow.schemas.eligibility import EligibilityVerdict
from claimflow.utils.errors import EligibilityUnavailable, ValidationError
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Providers
# =============================================================================


class EligibilityProvider(ABC):
    """Source of raw eligibility responses."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Name of this provider for logging."""
        pass

    @abstractmethod
    async def fetch(self, member_id: str, service_date: date) -> Mapping[str, Any]:
        """
        Query the provider.

        Returns:
            Raw response with ``covered`` and optional ``reason_code``
        """
        pass

    async def close(self) -> None:
        """Release provider resources."""
        return None


class StaticEligibilityProvider(EligibilityProvider):
    """
    In-memory roster used in demo mode and tests.

    Members listed in ``covered_members`` are covered; members in
    ``denied_members`` map to a payer reason code; anyone else is reported as
    not found.
    """

    def __init__(
        self,
        covered_members: Optional[set[str]] = None,
        denied_members: Optional[dict[str, str]] = None,
        unknown_member_reason: str = "MemberNotFound",
    ):
        self.covered_members = set(covered_members or ())
        self.denied_members = dict(denied_members or {})
        self.unknown_member_reason = unknown_member_reason

    @property
    def provider_name(self) -> str:
        return "static"

    async def fetch(self, member_id: str, service_date: date) -> Mapping[str, Any]:
        if member_id in self.covered_members:
            return {"covered": True}
        reason = self.denied_members.get(member_id, self.unknown_member_reason)
        return {"covered": False, "reason_code": reason}


class HttpEligibilityProvider(EligibilityProvider):
    """
    Eligibility verdicts over HTTP.

    Sends ``{"member_id": ..., "service_date": "YYYY-MM-DD"}`` as a JSON POST and
    expects ``{"covered": bool, "reason_code": str | null}`` back.
    """

    def __init__(
        self,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 5.0,
    ):
        self.url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    @property
    def provider_name(self) -> str:
        return "http"

    async def fetch(self, member_id: str, service_date: date) -> Mapping[str, Any]:
        response = await self._client.post(
            self.url,
            json={"member_id": member_id, "service_date": service_date.isoformat()},
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


# =============================================================================
# Gate
# =============================================================================


class EligibilityGate:
    """Single-attempt eligibility check with a timeout."""

    # Failures that mean "no verdict", as opposed to programming errors
    PROVIDER_FAILURES: tuple[type[BaseException], ...] = (
        asyncio.TimeoutError,
        httpx.HTTPError,
        PydanticValidationError,
        ValueError,
        OSError,
    )

    def __init__(self, provider: EligibilityProvider, timeout_seconds: float = 5.0):
        self.provider = provider
        self.timeout_seconds = timeout_seconds

    async def check(
        self,
        member_id: str,
        service_date: date,
        submitted_at: Optional[datetime] = None,
        claim_id: Optional[str] = None,
    ) -> EligibilityVerdict:
        """
        Check coverage for a member on a service date.

        Args:
            member_id: External member reference (non-empty)
            service_date: Date of service
            submitted_at: Submission time; service date may not be later
            claim_id: Claim being adjudicated, for error context

        Returns:
            EligibilityVerdict

        Raises:
            ValidationError: if the inputs violate the gate's constraints
            EligibilityUnavailable: if the provider fails or answers garbage
        """
        if not member_id or not member_id.strip():
            raise ValidationError("member id is required", claim_id=claim_id)
        if submitted_at is not None and service_date > submitted_at.date():
            raise ValidationError(
                "service date is after the submission date",
                claim_id=claim_id,
                service_date=service_date.isoformat(),
            )

        try:
            raw = await asyncio.wait_for(
                self.provider.fetch(member_id, service_date),
                timeout=self.timeout_seconds,
            )
            return EligibilityVerdict.model_validate(raw)
        except asyncio.TimeoutError as e:
            raise EligibilityUnavailable(
                f"Eligibility provider {self.provider.provider_name} timed out "
                f"after {self.timeout_seconds}s",
                claim_id=claim_id,
                member_id=member_id,
            ) from e
        except self.PROVIDER_FAILURES as e:
            raise EligibilityUnavailable(
                f"Eligibility provider {self.provider.provider_name} failed: {e}",
                claim_id=claim_id,
                member_id=member_id,
            ) from e


def create_eligibility_gate(settings=None) -> EligibilityGate:  # type: ignore[no-untyped-def]
    """Create a gate from settings: HTTP provider when a URL is configured."""
    from claimflow.core.config import get_settings

    settings = settings or get_settings()
    if settings.ELIGIBILITY_PROVIDER_URL:
        provider: EligibilityProvider = HttpEligibilityProvider(
            settings.ELIGIBILITY_PROVIDER_URL,
            timeout_seconds=settings.ELIGIBILITY_TIMEOUT_SECONDS,
        )
    else:
        logger.info("No eligibility provider URL configured, using the static demo roster")
        provider = StaticEligibilityProvider()
    return EligibilityGate(provider, timeout_seconds=settings.ELIGIBILITY_TIMEOUT_SECONDS)

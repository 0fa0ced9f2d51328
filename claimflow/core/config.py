"""
Adjudication Pipeline Configuration.
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from claimflow.core.enums import AuditBackend


class ClaimflowSettings(BaseSettings):
    """
    Adjudication pipeline settings.

    Every value can be overridden with a ``CLAIMFLOW_`` prefixed environment
    variable or through a local ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="CLAIMFLOW_",
    )

    # =========================================================================
    # Eligibility Gate
    # =========================================================================
    ELIGIBILITY_TIMEOUT_SECONDS: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for a single eligibility provider call",
    )
    ELIGIBILITY_MAX_ATTEMPTS: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Eligibility attempts before routing a claim to manual review",
    )
    ELIGIBILITY_BACKOFF_SECONDS: float = Field(
        default=0.5,
        ge=0,
        description="Delay before the second eligibility attempt",
    )
    ELIGIBILITY_BACKOFF_FACTOR: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the delay after each failed attempt",
    )
    ELIGIBILITY_PROVIDER_URL: Optional[str] = Field(
        default=None,
        description="HTTP eligibility verdict endpoint; demo roster when unset",
    )

    # =========================================================================
    # Concurrency
    # =========================================================================
    CLAIM_LOCK_TIMEOUT_SECONDS: float = Field(
        default=2.0,
        gt=0,
        description="How long a transition waits for the per-claim lock",
    )

    # =========================================================================
    # Audit Ledger
    # =========================================================================
    AUDIT_BACKEND: AuditBackend = Field(
        default=AuditBackend.MEMORY,
        description="Audit ledger backend: memory or sql",
    )
    AUDIT_DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./claimflow_audit.db",
        description="SQLAlchemy async URL used when AUDIT_BACKEND=sql",
    )
    AUDIT_DATABASE_ECHO: bool = Field(
        default=False,
        description="Log SQL statements issued by the ledger",
    )

    # =========================================================================
    # Fee Schedule
    # =========================================================================
    FEE_SCHEDULE_PATH: Optional[str] = Field(
        default=None,
        description="CSV fee schedule (procedure_code,allowed_amount,description)",
    )

    # =========================================================================
    # Logging
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_JSON: bool = Field(default=False, description="Serialize logs as JSON")
    LOG_FILE: Optional[str] = Field(default=None, description="Optional log file")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level

    def backoff_delays(self) -> list[float]:
        """Delays slept between consecutive eligibility attempts."""
        return [
            self.ELIGIBILITY_BACKOFF_SECONDS * (self.ELIGIBILITY_BACKOFF_FACTOR ** i)
            for i in range(self.ELIGIBILITY_MAX_ATTEMPTS - 1)
        ]


@lru_cache
def get_settings() -> ClaimflowSettings:
    """Get cached settings instance."""
    return ClaimflowSettings()

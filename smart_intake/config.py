"""
Application configuration via environment variables.

Uses Pydantic BaseSettings to load and validate all config from env vars
or a .env.local file. Every setting has a sensible default so the engine
can be constructed in-process with no configuration at all.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment selector."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Central configuration for the Smart Intake engine.

    Values are loaded from environment variables first, falling back
    to a `.env.local` file in the project root.
    """

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Environment ──────────────────────────────────────────────
    environment: Environment = Environment.DEVELOPMENT

    # ── Classification thresholds ────────────────────────────────
    auto_fill_threshold: float = Field(
        default=0.85, ge=0.0, le=1.0,
        description="Confidence at or above which a field is filled without asking",
    )
    auto_fill_critical_fields: bool = Field(
        default=False, description="Allow critical fields to be auto-filled",
    )
    max_auto_fill_fields: int = Field(
        default=20, ge=0, le=100, description="Max fields auto-filled in one classification pass",
    )

    # ── Aggregation ──────────────────────────────────────────────
    min_confidence_threshold: float = Field(
        default=0.65, ge=0.0, le=1.0,
        description="Merged defaults below this confidence are discarded, and the lower bound of the suggested band",
    )
    agreement_boost: float = Field(
        default=1.1, ge=1.0, le=2.0,
        description="Multiplier applied when several sources agree on a value",
    )
    document_context_confidence: float = Field(
        default=0.9, ge=0.0, le=1.0,
        description="Confidence assigned to values read from extracted documents",
    )
    provider_timeout_seconds: float = Field(
        default=5.0, gt=0.0, le=120.0, description="Per-provider call timeout",
    )
    learning_timeout_seconds: float = Field(
        default=5.0, gt=0.0, le=120.0, description="Bound on submitting one interaction to the learner",
    )

    # ── Cache ────────────────────────────────────────────────────
    cache_ttl_seconds: float = Field(
        default=300.0, ge=0.0, description="Lifetime of an aggregated default",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Root log level")

    # ── Derived helpers ──────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return cached Settings instance.

    Using lru_cache ensures we read env vars exactly once, and every
    module that calls ``get_settings()`` gets the same object.
    """
    return Settings()

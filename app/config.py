# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import get_settings
#   settings = get_settings()
#   app = create_app(settings)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# There is no module-level settings instance: the app factory and the
# Celery worker build Settings once and pass it (or the policies derived
# from it) to every collaborator.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.scoring import ScoringPolicy
from core.services.pattern_service import PatternPolicy


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings to:
    - Automatically load from .env file
    - Validate types and constraints
    - Provide sensible defaults for development
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # These are required - app won't start without them

    SUPABASE_URL: str = Field(
        ...,  # ... means required (no default)
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    SUPABASE_JWT_SECRET: str = Field(
        ...,
        description="Secret used to verify Supabase-issued user JWTs (HS256)"
    )

    STORAGE_BACKEND: Literal["supabase", "memory"] = Field(
        default="supabase",
        description="Where areas and history are stored ('memory' for local runs)"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------
    # Default to localhost for development

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    # -------------------------------------------------------------------------
    # OpenAI / Journal Analysis
    # -------------------------------------------------------------------------

    OPENAI_API_KEY: str = Field(
        ...,
        description="OpenAI API key for journal analysis"
    )

    OPENAI_MODEL: str = Field(
        default="gpt-4o",
        description="Model for journal analysis (must support JSON mode)"
    )

    ANALYSIS_TEMPERATURE: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="Sampling temperature; 0 keeps re-analysis reproducible"
    )

    ANALYSIS_SEED: int = Field(
        default=7,
        description="Fixed sampling seed sent with every call"
    )

    ANALYSIS_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0.0,
        description="Per-call timeout before failing open"
    )

    ANALYSIS_MAX_RETRIES: int = Field(
        default=1,
        ge=0,
        le=5,
        description="OpenAI client retries on transient errors"
    )

    ANALYSIS_CONFIDENCE_FLOOR: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Scores below this confidence are dropped"
    )

    ANALYSIS_MIN_CHARS: int = Field(
        default=20,
        ge=1,
        description="Text shorter than this is not sent for analysis"
    )

    ANALYSIS_MAX_INPUT_TOKENS: int = Field(
        default=6000,
        ge=500,
        description="Ceiling for prompt + journal text tokens"
    )

    ANALYSIS_MAX_OUTPUT_TOKENS: int = Field(
        default=1000,
        ge=100,
        description="Output tokens reserved per call"
    )

    ANALYSIS_OVERSIZE_POLICY: Literal["truncate", "skip"] = Field(
        default="truncate",
        description="What to do with text over the input ceiling"
    )

    ANALYSIS_COST_PER_1K_TOKENS_USD: float = Field(
        default=0.045,
        ge=0.0,
        description="Blended price used for cost projection"
    )

    ANALYSIS_MAX_COST_PER_CALL_USD: float = Field(
        default=0.5,
        gt=0.0,
        description="Calls projected above this cost are skipped"
    )

    ANALYSIS_DAILY_BUDGET_USD: float = Field(
        default=25.0,
        gt=0.0,
        description="Per-process spend allowed per UTC day"
    )

    ANALYSIS_MAX_CONCURRENCY: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Max in-flight analysis calls per process"
    )

    ANALYSIS_SLOT_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        gt=0.0,
        description="How long to wait for a free analysis slot"
    )

    # -------------------------------------------------------------------------
    # Scoring Engine
    # -------------------------------------------------------------------------

    STATUS_THRIVING_MIN: float = Field(default=70.0, ge=0.0, le=100.0)
    STATUS_ATTENTION_MIN: float = Field(default=40.0, ge=0.0, le=100.0)

    HYSTERESIS_RECOMPUTATIONS: int = Field(
        default=2,
        ge=1,
        description="Consecutive recomputations needed to publish a status change"
    )

    DRIFT_HALF_LIFE_DAYS: float = Field(default=7.0, gt=0.0)
    DRIFT_STEP: float = Field(default=0.25, gt=0.0, le=1.0)
    MOMENTUM_WINDOW_DAYS: int = Field(default=7, ge=1, le=90)

    BROKEN_COMMITMENT_WINDOW_DAYS: float = Field(
        default=7.0,
        ge=0.0,
        description="How long a broken commitment forces Breakdown"
    )

    MAX_CONCURRENCY_RETRIES: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Read-recompute-write retries before ConcurrencyConflict"
    )

    # -------------------------------------------------------------------------
    # Pattern Jobs
    # -------------------------------------------------------------------------

    SCHEDULER_SECRET: str = Field(
        ...,
        min_length=16,
        description="Shared secret the scheduler sends in X-Scheduler-Secret"
    )

    DECLINE_STREAK_DAYS: int = Field(default=3, ge=2, le=30)
    DRIFT_ALERT_THRESHOLD: float = Field(default=0.5, gt=0.0, le=1.0)
    WEEKLY_TREND_THRESHOLD: float = Field(default=4.0, ge=0.0)

    PATTERN_WINDOW_DAYS: int = Field(
        default=90,
        ge=7,
        le=365,
        description="Signal-log window scanned for trends and cross-area correlations"
    )
    TREND_MIN_SIGNALS: int = Field(default=4, ge=2)
    TREND_MIN_DIFFERENCE: float = Field(
        default=1.0,
        gt=0.0,
        le=5.0,
        description="Metric points between the halves of the window that make a trend"
    )
    CORRELATION_MIN_OCCURRENCES: int = Field(default=3, ge=2)
    CORRELATION_GAP_DAYS: float = Field(default=7.0, gt=0.0)

    ALERT_RETENTION_DAYS: int = Field(
        default=365,
        ge=1,
        description="Alerts older than this are archived by the archive job"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        # Load from .env file in project root
        env_file=".env",
        env_file_encoding="utf-8",
        # Don't fail if .env doesn't exist (useful for production where
        # env vars are set directly)
        env_ignore_empty=True,
        # Case-sensitive environment variable names
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    # -------------------------------------------------------------------------
    # Derived Policies
    # -------------------------------------------------------------------------

    def scoring_policy(self) -> ScoringPolicy:
        """Engine constants as an immutable policy object."""
        return ScoringPolicy(
            thriving_min=self.STATUS_THRIVING_MIN,
            attention_min=self.STATUS_ATTENTION_MIN,
            hysteresis_recomputations=self.HYSTERESIS_RECOMPUTATIONS,
            drift_half_life_days=self.DRIFT_HALF_LIFE_DAYS,
            drift_step=self.DRIFT_STEP,
            momentum_window_days=self.MOMENTUM_WINDOW_DAYS,
            broken_commitment_window_days=self.BROKEN_COMMITMENT_WINDOW_DAYS,
            max_concurrency_retries=self.MAX_CONCURRENCY_RETRIES,
        )

    def pattern_policy(self) -> PatternPolicy:
        """Pattern job thresholds as an immutable policy object."""
        return PatternPolicy(
            decline_streak_days=self.DECLINE_STREAK_DAYS,
            drift_alert_threshold=self.DRIFT_ALERT_THRESHOLD,
            weekly_trend_threshold=self.WEEKLY_TREND_THRESHOLD,
            momentum_window_days=self.MOMENTUM_WINDOW_DAYS,
            pattern_window_days=self.PATTERN_WINDOW_DAYS,
            trend_min_signals=self.TREND_MIN_SIGNALS,
            trend_min_difference=self.TREND_MIN_DIFFERENCE,
            correlation_min_occurrences=self.CORRELATION_MIN_OCCURRENCES,
            correlation_gap_days=self.CORRELATION_GAP_DAYS,
            alert_retention_days=self.ALERT_RETENTION_DAYS,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access. This is the recommended pattern for
    pydantic-settings.

    Returns:
        Settings: The application settings instance
    """
    return Settings()

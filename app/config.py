# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Only the Supabase credentials are required. Every delivery provider is
    optional: email falls back to log-only mode, Teams and feasibility
    lookups report "not configured" when called.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS, server-side only)"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    # -------------------------------------------------------------------------
    # Email Delivery (Resend)
    # -------------------------------------------------------------------------
    # Without RESEND_API_KEY the queue processor only logs emails.

    RESEND_API_KEY: str | None = Field(
        default=None,
        description="Resend API key; unset means simulate mode"
    )

    RESEND_API_URL: str = Field(
        default="https://api.resend.com/emails",
        description="Resend send-email endpoint"
    )

    EMAIL_FROM: str = Field(
        default="zHeight AI <onboarding@resend.dev>",
        description="Sender address for outgoing email"
    )

    ADMIN_NOTIFICATION_EMAIL: str = Field(
        default="admin@example.com",
        description="Recipient of task assignment notifications"
    )

    EMAIL_QUEUE_BATCH_SIZE: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Pending emails picked up per queue run"
    )

    EMAIL_MAX_ATTEMPTS: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Delivery attempts before a failed email stays failed"
    )

    # -------------------------------------------------------------------------
    # Microsoft Teams
    # -------------------------------------------------------------------------

    MS_TEAMS_WEBHOOK_URL: str | None = Field(
        default=None,
        description="Incoming webhook URL for task status cards"
    )

    TEAMS_TASK_URL: str = Field(
        default="https://zheight-ai.lovable.app/team-activity",
        description="Link used by the 'View Task Details' card action"
    )

    # -------------------------------------------------------------------------
    # Feasibility Lookup (Perplexity, OpenAI-compatible API)
    # -------------------------------------------------------------------------

    PERPLEXITY_API_KEY: str | None = Field(
        default=None,
        description="Perplexity API key for property research"
    )

    PERPLEXITY_BASE_URL: str = Field(
        default="https://api.perplexity.ai",
        description="Base URL of the OpenAI-compatible Perplexity API"
    )

    FEASIBILITY_MODEL: str = Field(
        default="sonar-reasoning",
        description="Model used for property data extraction"
    )

    FEASIBILITY_MAX_RETRIES: int = Field(
        default=3,
        ge=0,
        le=10,
        description="SDK-level retries for transient provider errors"
    )

    # -------------------------------------------------------------------------
    # Plan Review Agents (OpenAI)
    # -------------------------------------------------------------------------
    # Checklist extraction and plan checking report "not configured" without a key.

    OPENAI_API_KEY: str | None = Field(
        default=None,
        description="OpenAI API key for checklist extraction and plan checking"
    )

    OPENAI_MAX_RETRIES: int = Field(
        default=2,
        ge=0,
        le=10,
        description="SDK-level retries for transient OpenAI errors"
    )

    OPENAI_TIMEOUT_SECONDS: float = Field(
        default=600.0,
        gt=0,
        description="Timeout for one OpenAI call; document analysis is slow"
    )

    CHECKLIST_MODEL: str = Field(
        default="gpt-4.1-2025-04-14",
        description="Model that extracts checklist items from plans and correction letters"
    )

    PLAN_CITY_MODEL: str = Field(
        default="gpt-5-2025-08-07",
        description="Model that reads the city name from the first plan page"
    )

    CHECKLIST_MAX_FILES: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Documents accepted per checklist extraction"
    )

    CHECKLIST_MAX_FILE_SIZE_MB: int = Field(
        default=512,
        ge=1,
        description="Maximum size of one checklist source document in MB"
    )

    PLAN_FILES_BUCKET: str = Field(
        default="plan-files",
        description="Storage bucket for uploaded plan sets"
    )

    # -------------------------------------------------------------------------
    # Ingestion Settings
    # -------------------------------------------------------------------------

    INGEST_BATCH_SIZE: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Rows per bulk insert during CSV ingestion"
    )

    INGEST_MAX_REPORTED_ERRORS: int = Field(
        default=10,
        ge=1,
        description="Error messages returned in an ingestion report"
    )

    MAX_UPLOAD_SIZE_MB: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Maximum CSV upload size in MB for the parse endpoint"
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
        description="Enable debug mode (verbose logging)"
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

    APP_URL: str = Field(
        default="https://zheight.tech",
        description="Public web app URL used in invitation links"
    )

    HTTP_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for outbound HTTP delivery calls"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="*",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
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
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def checklist_max_file_size_bytes(self) -> int:
        return self.CHECKLIST_MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def email_simulate_mode(self) -> bool:
        """True when no Resend key is configured (emails are only logged)."""
        return not self.RESEND_API_KEY

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()

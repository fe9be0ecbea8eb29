"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. App-specific
settings use the ``NAGARSEVA_`` prefix; infrastructure settings use
their canonical environment variable names via ``validation_alias``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the NagarSeva grievance service.

    Environment variables are loaded from a ``.env`` file when present.
    App-specific keys are prefixed with ``NAGARSEVA_``; infra keys use
    their standard names (configured via ``validation_alias``).
    """

    model_config = SettingsConfigDict(
        env_prefix="NAGARSEVA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"
    cors_origins: str = Field(default="", validation_alias="CORS_ORIGINS")

    # ── GCP / Gemini classifier ────────────────────────────────────────
    gcp_project_id: str = Field(default="", validation_alias="GCP_PROJECT_ID")
    vertex_ai_model: str = Field(default="gemini-2.0-flash", validation_alias="VERTEX_AI_MODEL")
    vertex_ai_location: str = Field(default="asia-south1", validation_alias="VERTEX_AI_LOCATION")

    # ── Redis (intake session persistence) ─────────────────────────────
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")

    # ── Official role gate ─────────────────────────────────────────────
    official_api_key: str = Field(default="", validation_alias="OFFICIAL_API_KEY")

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # ── Intake dialogue ────────────────────────────────────────────────
    session_ttl_seconds: int = Field(default=3_600, ge=1)  # 1 hour
    session_sweep_interval_seconds: int = Field(default=300, ge=1)
    classifier_timeout_seconds: float = Field(default=5.0, gt=0)
    intake_min_description_chars: int = Field(default=20, ge=1)

    # ── Complaint secrets ──────────────────────────────────────────────
    min_secret_length: int = Field(default=6, ge=1)
    max_secret_length: int = Field(default=64, ge=1, le=72)  # bcrypt input limit
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    unify_auth_errors: bool = False

    # ── WhatsApp Cloud API ─────────────────────────────────────────────
    whatsapp_phone_id: str = Field(default="", validation_alias="WHATSAPP_PHONE_ID")
    whatsapp_access_token: str = Field(default="", validation_alias="WHATSAPP_ACCESS_TOKEN")
    whatsapp_verify_token: str = Field(default="", validation_alias="WHATSAPP_VERIFY_TOKEN")

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# Module-level singleton; import ``settings`` everywhere.
settings = Settings()

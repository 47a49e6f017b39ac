"""Application settings and configuration."""

import sys
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_SALT_DEFAULTS = {"change-me-in-production", "salt", "secret"}


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FLANEUR_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "flaneur"
    env: str = "development"
    allowed_origins: str = "http://localhost:3000"
    app_url: str = Field(
        default="http://localhost:3000",
        description="Public site URL used to build invite links",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"

    # Database
    database_url: str = "sqlite:///./flaneur.db"
    database_echo: bool = False
    store_timeout_seconds: float = Field(
        default=2.0,
        description="Upper bound for a single store call (connect, checkout, statement)",
    )

    # Referrals
    referral_ip_salt: str = Field(
        default="change-me-in-production",
        description="Secret mixed into visitor IP hashes; rotating it resets the dedup window",
    )
    referral_dedup_window_hours: int = 24
    referral_code_length: int = 8
    referral_code_max_attempts: int = 10


# Global settings instance
settings = Settings()

# ── Security validation ──────────────────────────────────────────────
if settings.env == "production":
    if settings.referral_ip_salt in _INSECURE_SALT_DEFAULTS or len(settings.referral_ip_salt) < 32:
        print(
            "\n❌  FATAL: FLANEUR_REFERRAL_IP_SALT is insecure or too short (min 32 chars).\n"
            "   Set a strong random value:  openssl rand -hex 32\n",
            file=sys.stderr,
        )
        sys.exit(1)

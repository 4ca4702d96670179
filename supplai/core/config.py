"""
Application configuration using pydantic-settings.

All environment variables are defined here with type safety.
"""

from typing import Literal

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False

    # Supabase
    SUPABASE_URL: str = Field(
        default="",
        description="Supabase project URL",
    )
    SUPABASE_ANON_KEY: str = Field(
        default="",
        description="Public anon key, subject to row level security",
    )
    SUPABASE_SERVICE_ROLE_KEY: str = Field(
        default="",
        description="Service role key, bypasses row level security (server only)",
    )

    # Session tokens issued by Supabase Auth
    SUPABASE_JWT_SECRET: str = Field(
        min_length=32,
        description="Secret used by Supabase Auth to sign access tokens",
    )
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"
    ACCESS_TOKEN_COOKIE: str = "sb-access-token"
    REFRESH_TOKEN_COOKIE: str = "sb-refresh-token"
    COOKIE_SECURE: bool = False

    # Redis
    REDIS_URL: RedisDsn = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker and worker locks",
    )

    # Email
    RESEND_API_KEY: str = Field(
        default="",
        description="Resend API key for sending emails",
    )
    EMAIL_FROM: str = Field(
        default="Supplai <onboarding@resend.dev>",
        description="From email address",
    )

    # Site URL used in auth redirects and email links
    SITE_URL: str = Field(
        default="http://localhost:3000",
        description="Public application URL",
    )

    # CORS
    CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )

    # Cron
    CRON_SECRET: str = Field(
        default="",
        description="Bearer secret for manual calls to the cron endpoints",
    )
    DRAFT_RETENTION_DAYS: int = 7

    # Celery
    CELERY_BROKER_URL: str | None = None
    CELERY_RESULT_BACKEND: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def __init__(self, **kwargs: object) -> None:
        """Initialize settings and set Celery URLs from Redis URL if not provided."""
        super().__init__(**kwargs)

        if self.CELERY_BROKER_URL is None:
            self.CELERY_BROKER_URL = str(self.REDIS_URL)
        if self.CELERY_RESULT_BACKEND is None:
            self.CELERY_RESULT_BACKEND = str(self.REDIS_URL)


# Global settings instance
settings = Settings()

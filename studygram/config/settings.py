# studygram/config/settings.py
"""
Application configuration using pydantic-settings (pydantic v2 style).

All environment-driven configuration lives here. Services receive a
`Settings` instance explicitly instead of reading os.environ inline, so
tests can build one with overrides.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application configuration loaded from environment.

    Relevant environment variables:
      - SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY / SUPABASE_ANON_KEY
      - DATABASE_URL (only for provisioning the schema)
      - OPENAI_API_KEY / OPENAI_MODEL
      - BLOB_READ_WRITE_TOKEN
      - STRIPE_SECRET_KEY / STRIPE_WEBHOOK_SECRET
      - APP_URL
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Supabase
    supabase_url: Optional[str] = Field(default=None)
    supabase_service_role_key: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    database_url: Optional[str] = Field(default=None)
    create_tables_on_startup: bool = False

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None)
    openai_model: str = "gpt-3.5-turbo"
    openai_timeout: float = 60.0

    # Vercel Blob
    blob_read_write_token: Optional[str] = Field(default=None)
    blob_api_url: str = "https://blob.vercel-storage.com"

    # Stripe
    stripe_secret_key: Optional[str] = Field(default=None)
    stripe_webhook_secret: Optional[str] = Field(default=None)
    stripe_api_version: str = "2023-10-16"

    # App
    app_url: str = "http://localhost:3000"
    environment: str = "development"
    log_level: str = "INFO"
    health_check_timeout: float = 5.0
    fail_on_db_startup: bool = False

    # --- validators / post-init checks ---
    @field_validator(
        "supabase_url",
        "supabase_service_role_key",
        "supabase_anon_key",
        "openai_api_key",
        "blob_read_write_token",
        "stripe_secret_key",
        "stripe_webhook_secret",
    )
    @classmethod
    def maybe_strip(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("app_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    def model_post_init(self, __context) -> None:
        """
        Light-weight notice that runs after the model is constructed.
        Uses logging (not print) so messages show up in server logs.
        """
        if not self.supabase_url or not self.supabase_service_role_key:
            logger.warning(
                "Supabase credentials are not configured. "
                "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY to enable DB features."
            )
        if not self.openai_api_key:
            logger.info("OPENAI_API_KEY not set. AI chat and insights will fail.")
        if not self.blob_read_write_token:
            logger.info("BLOB_READ_WRITE_TOKEN not set. File uploads are disabled.")
        if not self.stripe_secret_key:
            logger.info("STRIPE_SECRET_KEY not set. Billing endpoints will fail.")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

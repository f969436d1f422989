"""
Configuration and settings for the feedback backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Record store: mongodb:// selects MongoDB, anything else SQLAlchemy
    database_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("DATABASE_URL", "MONGO_URI")
    )
    mongo_database: str = Field(default="studentFeedbackDB")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Sessions (Redis when configured)
    redis_url: Optional[str] = Field(default=None)
    redis_session_prefix: str = Field(default="feedback:session:")

    # Protected variant: mutating routes need a signed-in user
    require_auth: bool = Field(default=False)
    session_secret: str = Field(default="change-me-in-production")
    session_cookie_name: str = Field(default="feedback_session")
    session_lifetime_days: int = Field(default=7, ge=1)
    session_cookie_secure: bool = Field(default=False)

    # Google OAuth
    google_client_id: Optional[str] = Field(default=None)
    google_client_secret: Optional[str] = Field(default=None)
    oauth_redirect_url: str = Field(
        default="http://localhost:5000/auth/google/callback"
    )
    frontend_url: str = Field(default="http://localhost:5173")
    login_url: str = Field(default="http://localhost:5173/login")

    # Comma separated list of browser origins allowed to call the API
    frontend_origins: str = Field(default="http://localhost:5173")

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.frontend_origins.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()

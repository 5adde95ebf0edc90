"""
Configuration settings for the HoneyBadger client.

Uses environment variables (prefixed HONEYBADGER_) with sensible defaults
for local development against the Node.js backend.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HONEYBADGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend
    base_url: str = "http://localhost:3000"
    timeout: float = Field(default=30.0, gt=0)

    # Session persistence
    token_db_path: Path = Field(
        default_factory=lambda: Path.home() / ".honeybadger" / "session.db"
    )

    # Diagnostics
    debug: bool = False
    log_request_bodies: bool = False

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Paths are joined as '/api/...', so drop any trailing slash."""
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

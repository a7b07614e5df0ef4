"""
Configuration management for the Clinic-AI client.

This module provides centralized configuration using Pydantic Settings
for environment-based configuration management.
"""

from typing import Optional

import os
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Backend API connection settings."""

    model_config = SettingsConfigDict(env_prefix="CLINICAI_API_")

    base_url: str = Field(default="http://localhost:8000", description="Clinic-AI backend base URL")
    timeout_seconds: float = Field(default=15.0, description="Per-request timeout in seconds")
    upload_timeout_seconds: float = Field(
        default=300.0, description="Timeout for audio uploads in seconds (5 minutes)"
    )
    doctor_id: Optional[str] = Field(default=None, description="Value sent as X-Doctor-ID header")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate base URL format."""
        v = (v or "").strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("API base URL must start with 'http://' or 'https://'")
        return v.rstrip("/")

    @field_validator("timeout_seconds", "upload_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeouts are positive."""
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v


class PollingSettings(BaseSettings):
    """Transcription status polling settings."""

    model_config = SettingsConfigDict(env_prefix="CLINICAI_POLL_")

    base_ms: int = Field(default=1500, description="Delay before the first retry in milliseconds")
    growth_factor: float = Field(default=1.6, description="Exponential growth factor per attempt")
    cap_ms: int = Field(default=15000, description="Upper bound for a computed delay in milliseconds")
    deadline_ms: int = Field(
        default=1_500_000,
        description="Whole-session ceiling in milliseconds (25 minutes covers long recordings)",
    )

    @field_validator("base_ms", "cap_ms", "deadline_ms")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError("Polling durations must be positive")
        return v

    @field_validator("growth_factor")
    @classmethod
    def validate_growth(cls, v: float) -> float:
        """Validate growth factor never shrinks the delay."""
        if v < 1.0:
            raise ValueError("Growth factor must be >= 1.0")
        return v

    @model_validator(mode="after")
    def validate_cap(self) -> "PollingSettings":
        """Validate cap is not below the base delay."""
        if self.cap_ms < self.base_ms:
            raise ValueError("cap_ms must be greater than or equal to base_ms")
        return self


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(default="json", description="Log format (json or text)")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate logging format."""
        if v.lower() not in ["json", "text"]:
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class Settings(BaseSettings):
    """Main client settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    app_name: str = Field(default="Clinic-AI Client", description="Application name")
    app_env: str = Field(default="development", description="Application environment")

    api: ApiSettings = Field(default_factory=ApiSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate application environment."""
        valid_envs = ["development", "staging", "production", "testing"]
        if v.lower() not in valid_envs:
            raise ValueError(f"App environment must be one of: {valid_envs}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.app_env == "testing"


_settings: Optional[Settings] = None


def _load_env_file_if_available() -> None:
    """Best-effort load of .env by searching current and parent directories.

    Already-set environment variables are never overridden.
    """
    from dotenv import load_dotenv

    cwd = Path(os.getcwd()).resolve()
    for parent in [cwd, *cwd.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            load_dotenv(dotenv_path=str(candidate), override=False)
            break


def get_settings() -> Settings:
    """Get client settings instance (lazy-init with .env discovery)."""
    global _settings
    if _settings is None:
        _load_env_file_if_available()
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None

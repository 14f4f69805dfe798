"""Configuration utilities for the VoicePath backend."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from the environment."""

    environment: str = Field(
        default="development",
        description="Name of the current environment (development, staging, production).",
    )
    log_level: str = Field(default="INFO", description="Root log level for the process.")

    bland_api_key: Optional[str] = Field(
        default=None,
        description="API key for the remote pathway service. Without it builds are returned as previews.",
    )
    bland_base_url: str = Field(
        default="https://api.bland.ai/v1",
        description="Base URL of the remote pathway service.",
    )
    request_timeout: float = Field(default=30.0, gt=0, description="Timeout in seconds for remote calls.")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def remote_enabled(self) -> bool:
        return bool((self.bland_api_key or "").strip())


@lru_cache
def get_settings() -> Settings:
    return Settings()

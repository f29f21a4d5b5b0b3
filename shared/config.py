"""
Shared configuration management for the IdeaSpark Access Layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="IDEASPARK_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Counter store
    store_backend: str = Field(default="upstash")  # "upstash" or "redis"
    upstash_rest_url: Optional[str] = Field(default=None)
    upstash_rest_token: Optional[str] = Field(default=None)
    redis_url: str = Field(default="redis://localhost:6379/0")
    store_timeout_seconds: float = Field(default=5.0)

    # Fixed-window limits
    window_seconds: int = Field(default=3600)
    combined_limit: int = Field(default=50)
    cookie_limit: int = Field(default=30)
    ip_limit: int = Field(default=20)

    # Session cookie
    cookie_name: str = Field(default="ideaspark_id")
    cookie_max_age_seconds: int = Field(default=31536000)

    # Downstream generation
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-2.0-flash")
    gemini_base_url: str = Field(default="https://generativelanguage.googleapis.com/v1")
    downstream_timeout_seconds: float = Field(default=20.0)

    # Client SDK
    client_storage_path: Optional[str] = Field(default=None)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)

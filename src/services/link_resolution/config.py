"""
Link Resolution Service Configuration

Process settings using pydantic-settings for environment variable support.
The field/relation schema itself lives in a separate TOML file (see schema.py).
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LinkServiceConfig(BaseSettings):
    """
    Configuration for the Link Resolution Service.

    Reads from environment variables with LINK_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="LINK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server Identity
    server_name: str = Field(
        default="link-resolution",
        description="Server name for identification",
    )
    server_version: str = Field(
        default="0.1.0",
        description="Server version",
    )

    # Schema
    schema_path: str = Field(
        default="config.toml",
        description="Path to the TOML file declaring fields and relations",
    )

    # Transport Configuration
    host: str | None = Field(
        default=None,
        description="Host to bind, overrides the schema's listen address",
    )
    port: int | None = Field(
        default=None,
        description="Port to bind, overrides the schema's listen address",
    )

    # Traversal
    max_depth: int = Field(
        default=10,
        ge=1,
        description="Maximum number of breadth-first rounds per request",
    )
    max_concurrent_lookups: int = Field(
        default=16,
        ge=1,
        description="Maximum relation lookups in flight per request",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a whole resolution request",
    )

    # Database Configuration
    postgres_pool_min: int = Field(
        default=1,
        description="Minimum connections per PostgreSQL relation pool",
    )
    postgres_pool_max: int = Field(
        default=10,
        description="Maximum connections per PostgreSQL relation pool",
    )
    sqlite_timeout_seconds: float = Field(
        default=30.0,
        description="Busy timeout for SQLite relations",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )


def load_config() -> LinkServiceConfig:
    """Load configuration from environment."""
    return LinkServiceConfig()

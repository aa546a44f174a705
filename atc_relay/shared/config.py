"""Configuration management using pydantic-settings."""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Interface the relay listens on")
    port: int = Field(default=3000, description="Port the relay listens on", ge=1, le=65535)
    upstream_base_url: str = Field(
        default="http://d.liveatc.net/",
        description="Streaming origin; the stream id is appended as a path segment",
    )
    connect_timeout: float = Field(
        default=10.0, description="Upstream connect/header timeout in seconds", ge=0.1
    )
    read_timeout: float = Field(
        default=30.0, description="Max seconds between two upstream body reads", ge=0.1
    )
    chunk_size: int = Field(default=64 * 1024, description="Max bytes per forwarded chunk", ge=1024)
    stream_id_pattern: str = Field(
        default=r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$",
        description="Allow-list pattern for stream identifiers",
    )
    allowed_stream_ids: list[str] = Field(
        default_factory=list,
        description="Explicit stream id registry; empty means any id matching the pattern",
    )
    user_agent: str = Field(default="atc-relay/0.1", description="User-Agent sent upstream")
    shutdown_timeout: float = Field(default=5.0, description="Graceful shutdown timeout in seconds", ge=0.0)
    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache
def get_settings() -> Settings:
    """Get the application settings instance."""
    return Settings()

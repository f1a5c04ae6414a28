from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Redis settings
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float | None = 1.0  # Seconds, None = block forever

    # Rate limiting settings
    rate_limit_fail_closed: bool = (
        True  # If False, admit requests when the store is unavailable
    )
    token_bucket_ttl_seconds: int = 3600  # Cleanup horizon for idle buckets

    # Time source shared by all callers of a key
    clock_source: Literal["local", "redis"] = "local"

    # Logging settings
    log_level: str = "INFO"
    log_format: Literal["text", "structured", "json"] = "text"

    @field_validator("token_bucket_ttl_seconds")
    @classmethod
    def validate_ttl_positive(cls, v: int) -> int:
        """Validate bucket TTL is positive."""
        if v < 1:
            raise ValueError("token_bucket_ttl_seconds must be at least 1")
        return v

    @field_validator("redis_socket_timeout")
    @classmethod
    def validate_timeout_positive(cls, v: float | None) -> float | None:
        """Validate socket timeout is positive when set."""
        if v is not None and v <= 0:
            raise ValueError("redis_socket_timeout must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()

"""Environment configuration for the sender.

Values are loaded from environment variables (and an optional ``.env`` file).
Command-line flags take precedence; see ``spiders.scripts.send_event``.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_BLOCK_ID = 1023


class SenderSettings(BaseSettings):
    """Top-level configuration container for the sender."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    aeron_dir: str | None = Field(alias="AERON_DIR", default=None)
    # STREAM_URI / STREAM_ID are the names used by the older message launcher.
    control_uri: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CONTROL_URI", "STREAM_URI"),
    )
    control_stream_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("CONTROL_STREAM_ID", "STREAM_ID"),
    )
    block_id: int = Field(alias="BLOCK_ID", default=MAX_BLOCK_ID)

    connection_timeout_ms: int = Field(alias="SPIDERS_CONNECTION_TIMEOUT_MS", default=1000)
    offer_max_attempts: int = Field(alias="SPIDERS_OFFER_MAX_ATTEMPTS", default=10)
    # 0 disables the deadline and waits out back pressure indefinitely.
    offer_timeout_ms: int = Field(alias="SPIDERS_OFFER_TIMEOUT_MS", default=5000)

    redis_stream_prefix: str = Field(
        alias="SPIDERS_REDIS_STREAM_PREFIX", default="spiders.stream"
    )
    redis_max_stream_length: int | None = Field(
        alias="SPIDERS_REDIS_MAX_STREAM_LENGTH", default=None
    )
    http_timeout_s: float = Field(alias="SPIDERS_HTTP_TIMEOUT_S", default=30.0)

    log_level: str = Field(alias="LOG_LEVEL", default="INFO")

    @field_validator("block_id")
    @classmethod
    def validate_block_id(cls, v: int) -> int:
        if not 0 <= v <= MAX_BLOCK_ID:
            raise ValueError(f"BLOCK_ID {v} must be between 0 and {MAX_BLOCK_ID}")
        return v

    @field_validator("connection_timeout_ms", "offer_timeout_ms")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"timeout {v} must be non-negative")
        return v

    @field_validator("offer_max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"offer attempts {v} must be at least 1")
        return v

    @property
    def offer_deadline_s(self) -> float | None:
        if self.offer_timeout_ms == 0:
            return None
        return self.offer_timeout_ms / 1000.0


__all__ = ["SenderSettings", "MAX_BLOCK_ID"]

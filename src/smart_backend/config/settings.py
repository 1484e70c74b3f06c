"""Process-wide runtime settings read from the environment."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SmartClientSettings(BaseSettings):
    """Runtime knobs shared by every organization's client.

    Environment variables:
      SMART_HTTP_TIMEOUT            seconds per HTTP call (default 10)
      SMART_CLOCK_SKEW_SECONDS      subtracted from token lifetimes (default 30)
      SMART_DISCOVERY_TTL_SECONDS   discovery cache TTL; unset = process lifetime

    Invalid values fail at construction with ``pydantic.ValidationError``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMART_",
        env_ignore_empty=True,
        extra="ignore",
    )

    http_timeout: float = Field(default=10.0, gt=0)
    clock_skew_seconds: int = Field(default=30, ge=0)
    discovery_ttl_seconds: float | None = Field(default=None, gt=0)

"""Application configuration, loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

GIT_BOX = "https://gitbox.apache.org/repos/asf"
GIT_WIP = "https://git-wip-us.apache.org/repos/asf"


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class Settings(BaseSettings):
    """Central configuration loaded from env vars (or ``.env`` file).

    Numeric tunables outside their documented range are clamped rather than
    rejected.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # gitweb scraping
    gitweb_hosts: list[str] = [GIT_WIP, GIT_BOX]
    request_timeout_ms: int = 10_000
    pre_request_sleep_ms: int = 0
    disable: bool = False
    max_changelog: int = 1024

    # push notification feed
    pubsub_url: str = "http://gitpubsub-wip.apache.org:2069/json/*"
    pubsub_enabled: bool = True
    pubsub_server_template: str = "https://{server}.apache.org/repos/asf"
    poll_period_seconds: int = 10
    request_recycle_mins: int = -1

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("request_timeout_ms")
    @classmethod
    def _clamp_timeout(cls, v: int) -> int:
        return _clamp(v, 1_000, 60_000)

    @field_validator("pre_request_sleep_ms")
    @classmethod
    def _clamp_sleep(cls, v: int) -> int:
        return _clamp(v, 0, 30_000)

    @field_validator("poll_period_seconds")
    @classmethod
    def _clamp_period(cls, v: int) -> int:
        return _clamp(v, 1, 3600)

    @field_validator("max_changelog")
    @classmethod
    def _positive_changelog(cls, v: int) -> int:
        return max(1, v)

    @field_validator("request_recycle_mins")
    @classmethod
    def _recycle_or_never(cls, v: int) -> int:
        return -1 if v < 0 else v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton application settings (cached after first call)."""
    return Settings()

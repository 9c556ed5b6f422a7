"""
Native Ingester - Settings

Environment-driven configuration. No .env file is loaded; every value comes
from os.environ, so the deployment manifest is the single source of truth.

Usage:
    from ingester.config import get_settings

    settings = get_settings()
    settings.collections_by_origins  # {"http://cmdb.ft.com/systems/...": "methode"}
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings read from the environment."""

    model_config = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # =========================================================================
    # QUEUE (Kafka REST proxy)
    # =========================================================================

    Q_ADDR: str = Field(
        default="http://localhost:8080",
        description="Comma-separated queue proxy addresses",
    )
    Q_GROUP: str = Field(default="native-ingester", description="Consumer group")
    Q_READ_TOPIC: str = Field(
        default="NativeCmsPublicationEvents",
        description="Topic the publication events are read from",
    )
    Q_READ_QUEUE: str = Field(default="", description="Host header for consumer calls")
    Q_WRITE_TOPIC: str = Field(
        default="",
        description="Destination topic for written messages (empty disables forwarding)",
    )
    Q_WRITE_QUEUE: str = Field(default="", description="Host header for producer calls")
    Q_OFFSET: Literal["largest", "smallest"] = Field(default="largest")
    Q_AUTO_COMMIT: bool = Field(default=True)
    Q_AUTHORIZATION: str = Field(default="", description="Authorization header value")
    Q_POLL_INTERVAL_SECONDS: float = Field(default=1.0, ge=0)

    # =========================================================================
    # NATIVE STORE
    # =========================================================================

    NATIVE_RW_ADDRESS: str = Field(
        default="http://localhost:8082",
        description="Base address of the native store",
    )
    NATIVE_RW_HOST_HEADER: str = Field(default="", description="Host header override")
    NATIVE_RW_COLLECTIONS_BY_ORIGINS: dict[str, str] = Field(
        default_factory=dict,
        description="JSON object mapping origin system IDs to collections",
    )
    NATIVE_RW_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    CONTENT_UUID_FIELD: str = Field(default="uuid", min_length=1)

    # =========================================================================
    # SERVICE
    # =========================================================================

    SERVICE_NAME: str = Field(default="native-ingester")
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8081)

    @field_validator("NATIVE_RW_ADDRESS", "Q_ADDR")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return ",".join(part.strip().rstrip("/") for part in v.split(",") if part.strip())

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _upper_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    # =========================================================================
    # PROPERTY ALIASES
    # =========================================================================

    @property
    def queue_addresses(self) -> list[str]:
        return [addr for addr in self.Q_ADDR.split(",") if addr]

    @property
    def native_address(self) -> str:
        return self.NATIVE_RW_ADDRESS

    @property
    def collections_by_origins(self) -> dict[str, str]:
        return dict(self.NATIVE_RW_COLLECTIONS_BY_ORIGINS)

    @property
    def forwarding_enabled(self) -> bool:
        return bool(self.Q_WRITE_TOPIC.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def reset_settings() -> None:
    """Clear the cached settings (for testing or environment switch)."""
    get_settings.cache_clear()


def log_startup_diagnostics(settings: Settings) -> None:
    """Log the effective configuration, without credentials."""
    logger.info(
        "Starting %s | queue=%s group=%s topic=%s offset=%s auto_commit=%s",
        settings.SERVICE_NAME,
        settings.queue_addresses,
        settings.Q_GROUP,
        settings.Q_READ_TOPIC,
        settings.Q_OFFSET,
        settings.Q_AUTO_COMMIT,
    )
    logger.info(
        "Native store=%s host_header=%r collections=%d forward_topic=%r",
        settings.native_address,
        settings.NATIVE_RW_HOST_HEADER,
        len(settings.NATIVE_RW_COLLECTIONS_BY_ORIGINS),
        settings.Q_WRITE_TOPIC,
    )


__all__ = [
    "Settings",
    "get_settings",
    "log_startup_diagnostics",
    "reset_settings",
]

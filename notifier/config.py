"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./notifier.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    api_key: str | None = Field(
        default=None,
        description="Shared secret expected in the X-API-Key header; disabled when empty",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed to call the HTTP API",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    vapid_public_key: str | None = Field(
        default=None, description="VAPID public key used for Web Push"
    )
    vapid_private_key: str | None = Field(
        default=None, description="VAPID private key used to sign Web Push requests"
    )
    vapid_subject: str = Field(
        default="mailto:admin@example.com",
        description="Contact URI announced to Web Push services",
    )
    fcm_project_id: str | None = Field(default=None, description="Firebase project id")
    fcm_private_key: str | None = Field(
        default=None, description="Firebase service account private key"
    )
    fcm_client_email: str | None = Field(
        default=None, description="Firebase service account client email"
    )

    push_queue_max_attempts: int = Field(
        default=3, gt=0, description="Attempts per push job before it is reported failed"
    )
    push_queue_backoff_seconds: float = Field(
        default=2.0, ge=0, description="Base delay of the exponential retry backoff"
    )
    push_queue_concurrency: int = Field(
        default=10, gt=0, description="Number of concurrent push workers"
    )

    notification_expiry_days: int = Field(
        default=30, gt=0, description="Default lifetime of a notification"
    )
    notification_retention_days: int = Field(
        default=90, gt=0, description="Age after which notifications are purged"
    )
    bulk_chunk_size: int = Field(
        default=100, gt=0, description="Recipients processed per bulk sub-batch"
    )
    subscription_stale_days: int = Field(
        default=90, gt=0, description="Days without use before a subscription is stale"
    )
    default_timezone: str = Field(
        default="America/Mexico_City",
        description="Timezone assigned to newly created quiet-hours windows",
    )

    @model_validator(mode="after")
    def _validate_push_credentials(self) -> "Settings":
        if bool(self.vapid_public_key) ^ bool(self.vapid_private_key):
            raise ValueError(
                "VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY must both be provided to enable Web Push"
            )
        fcm_values = (self.fcm_project_id, self.fcm_private_key, self.fcm_client_email)
        if any(fcm_values) and not all(fcm_values):
            raise ValueError(
                "FCM_PROJECT_ID, FCM_PRIVATE_KEY and FCM_CLIENT_EMAIL must be provided together"
            )
        return self

    @property
    def web_push_enabled(self) -> bool:
        return bool(self.vapid_public_key and self.vapid_private_key)

    @property
    def fcm_enabled(self) -> bool:
        return bool(self.fcm_project_id and self.fcm_private_key and self.fcm_client_email)


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]

"""Configuration management for taskdesk."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="data/taskdesk.db", description="Path to the SQLite database file")
    store_timeout_seconds: float = Field(
        default=15.0, description="Upper bound for a single store call before it is treated as unavailable"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Daily Trigger Configuration
    cron_secret: str | None = Field(default=None, description="Shared secret for the overdue sweep HTTP trigger")
    enable_scheduler: bool = Field(default=True, description="Run the overdue sweep in-process every day")
    sweep_hour: int = Field(default=6, ge=0, le=23, description="Hour of day the in-process sweep runs")
    timezone: str = Field(default="UTC", description="IANA timezone used to decide what 'today' is")

    # Notification Configuration
    notification_locale: str = Field(default="es", description="Locale for notification messages ('es' or 'en')")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # Notifications
    NOTIFICATION_LIST_LIMIT: int = 20

    # Optimistic concurrency: attempts before a lost compare-and-set is reported
    MAX_MUTATION_ATTEMPTS: int = 3

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100
    SWEEP_BATCH_SIZE: int = 500

    # Roles allowed to mutate any task and to receive alerts
    ELEVATED_ROLES: frozenset[str] = frozenset({"admin"})

    # Cron trigger
    CRON_SECRET_HEADER: str = "X-Cron-Secret"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()

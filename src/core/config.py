"""Configuration management for chomper."""

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

    # Task store
    sqlite_db_path: str = Field(default="./data/chomper.db", description="SQLite database file for the task store")

    # Time handling
    app_timezone: str = Field(
        default="UTC",
        description="Process-local timezone used for the daily regeneration gate and template calendar days",
    )
    default_notification_time: str = Field(default="07:00", description="Reminder time (HH:MM) for new users")

    # Scheduler
    scheduler_tick_seconds: int = Field(default=60, description="Seconds between scheduler ticks")

    # Push relay (optional)
    push_gateway_url: str | None = Field(
        default=None, description="HTTP push relay URL; notifications are not delivered when unset"
    )
    push_gateway_api_key: str | None = Field(
        default=None, description="Push relay API key, required when push_gateway_url is set"
    )
    app_url: str = Field(default="/", description="URL opened when a notification is tapped")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

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

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # HTTP Status Codes
    HTTP_NOT_FOUND: int = 404
    HTTP_GONE: int = 410
    HTTP_CLIENT_ERROR_START: int = 400
    HTTP_SERVER_ERROR: int = 500

    # Progress defaults
    DEFAULT_HAPPINESS: int = 50
    HAPPINESS_PER_COMPLETION: int = 5
    MIN_HAPPINESS: int = 0
    MAX_HAPPINESS: int = 100

    # Recurrence
    MAX_DAY_OF_MONTH: int = 28  # Capped to avoid month-length edge cases
    MAX_DAY_OF_WEEK: int = 6  # 0=Sunday, 6=Saturday

    # Scheduler
    REGENERATION_HOUR: int = 0
    REGENERATION_MINUTE: int = 0

    # Task defaults
    DEFAULT_CATEGORY: str = "personal"
    DEFAULT_PRIORITY: str = "medium"

    # Push delivery
    PUSH_MAX_RETRIES: int = 3
    PUSH_RETRY_DELAY_SECONDS: float = 1.0

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 500  # Default pagination limit for list queries

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100  # Max items in dead letter queue
    TRACKER_DLQ_THRESHOLD: int = 3  # Consecutive failures before a job lands in the DLQ


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()

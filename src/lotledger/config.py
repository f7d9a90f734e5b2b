"""Configuration settings for the application."""

from urllib.parse import quote

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database configuration
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_db: str = "lotledger"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    # Full SQLAlchemy URL; takes precedence over the postgres_* fields when set
    database_url_override: str = ""

    # Application settings
    debug: bool = False

    # Roles allowed to undo history entries and delete lots
    privileged_roles: list[str] = ["owner"]

    # Retry policy for version conflicts and transient store failures
    store_retry_attempts: int = 3
    store_retry_base_delay: float = 0.1
    store_retry_max_delay: float = 2.0

    # Daily consumption reminder
    alert_check_interval_seconds: int = 3600
    alert_period_hours: int = 24

    # Look-ahead window for the expiring lots report
    expiring_window_days: int = 7

    @property
    def database_url(self) -> str:
        """Construct the database URL for async PostgreSQL connection."""
        if self.database_url_override:
            return self.database_url_override
        base_url = (
            f"postgresql+asyncpg://{quote(self.postgres_user, safe='')}:{quote(self.postgres_password, safe='')}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )
        # Add SSL for Azure PostgreSQL
        if "azure" in self.postgres_host.lower() or "postgres.database" in self.postgres_host.lower():
            return f"{base_url}?ssl=require"
        return base_url


# Global settings instance
settings = Settings()

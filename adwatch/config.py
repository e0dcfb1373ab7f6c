"""adwatch settings, read from the environment and an optional .env file."""

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Polling, fetching, storage and Telegram settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./adwatch.db"

    @model_validator(mode="after")
    def fix_database_url(self) -> "Settings":
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://"""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            self.DATABASE_URL = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            self.DATABASE_URL = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Polling
    POLL_INTERVAL_SECONDS: int = 300
    BATCH_SIZE: int = 10
    BATCH_PAUSE_SECONDS: float = 1.0
    DEACTIVATION_THRESHOLD: int = 5
    NOTIFY_CAP: int = 5
    NOTIFY_DELAY_SECONDS: float = 3.0

    # Fetching
    FETCH_MAX_ATTEMPTS: int = 3
    FETCH_TIMEOUT_SECONDS: float = 10.0

    # Kufar lookup tables (categories, regions, city spellings).
    # Empty means the table bundled with the package.
    KUFAR_LOOKUP_PATH: Optional[str] = None

    # Subscribers
    MAX_QUERIES_PER_SUBSCRIBER: int = 10

    # Retention job for stored ads
    AD_RETENTION_DAYS: int = 30

    # Telegram Bot API
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_API_URL: str = "https://api.telegram.org"


settings = Settings()

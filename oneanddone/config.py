"""Application configuration using Pydantic settings."""

from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

# PGA Tour events are scheduled in US Eastern time
POOL_TZ = ZoneInfo("America/New_York")


def pool_now() -> datetime:
    """Current time in the pool's timezone."""
    return datetime.now(POOL_TZ)


def pool_now_naive() -> datetime:
    """Current pool time as naive datetime (for SQLAlchemy defaults).

    SQLite doesn't handle timezone-aware datetimes well, so timestamps are
    stored as naive local time.
    """
    return pool_now().replace(tzinfo=None)


def pool_today() -> date:
    """Today's date in the pool's timezone."""
    return pool_now().date()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ONEANDDONE_",
        extra="ignore",
    )

    # Database
    db_path: Path = Path("./data/oneanddone.db")

    # App
    debug: bool = False
    log_level: str = "INFO"
    disable_background: bool = False

    # Daily auto-completion sweep (pool local time)
    completion_sweep_hour: int = 0
    completion_sweep_minute: int = 5

    @property
    def database_url(self) -> str:
        """SQLite database URL for SQLAlchemy."""
        return f"sqlite+aiosqlite:///{self.db_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""Configuration settings for memoshare."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Database
    database_path: Path = Path("memoshare.db")
    db_pool_size: int = 10
    # None waits forever for a free connection
    db_pool_timeout: float | None = None

    # Sessions
    session_secret: str  # Required - no default for security
    session_cookie_name: str = "memoshare_session"
    session_max_age: int = 60 * 60 * 24 * 30  # 30 days
    session_dir: Path | None = None  # None keeps sessions in memory
    session_cookie_secure: bool = False

    # App
    memos_per_page: int = 100
    static_dir: Path = Path("public")
    signin_rate_limit: str = "20/minute"
    worker_threads: int = 40
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_prefix = "MEMOSHARE_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

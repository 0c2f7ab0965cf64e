"""
Centralized application configuration.
"""
from functools import lru_cache
from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Idea Board"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./data/board.db"

    # Board import engine
    import_max_tasks: int = 500  # Bulk imports are silently truncated past this
    import_batch_size: int = 50
    import_retry_delay_seconds: float = 1.0
    import_throttle_seconds: float = 0.3  # Pause between sequential task writes

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings."""
    return Settings()


# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = PROJECT_ROOT / "data"

"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    database_url: str = "sqlite+aiosqlite:///./shelfsync.db"
    remote_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379"
    redis_key_prefix: str = "shelfsync"
    google_books_url: str = "https://www.googleapis.com/books/v1/volumes"
    open_library_url: str = "https://openlibrary.org/search.json"
    google_books_api_key: str = ""
    search_results_limit: int = 20
    search_timeout: float = 10.0
    log_level: str = "INFO"

    model_config = {"env_file": ".env"}


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

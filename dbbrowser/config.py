"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # Default connection fields offered to the login form
    DB_HOST: str = "localhost"
    DB_PORT: int = 3307
    DB_USER: str = "root"
    DB_PASSWORD: str = "root"
    DB_NAME: str = "warehouse_db"

    # Optional ready-made URL, connected on startup when set
    DATABASE_URL: Optional[str] = None

    # Pool
    DB_POOL_SIZE: int = 5
    DB_POOL_RECYCLE: int = 3600

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Application
    APP_NAME: str = "Database Browser"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    CORS_ORIGINS: List[str] = ["http://localhost:1420", "http://localhost:5173"]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

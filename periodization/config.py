"""Application configuration loaded from environment variables."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "exercise_catalog.json"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PERIODIZATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = Field(default="sqlite:///periodization.db")
    SQL_ECHO: bool = Field(default=False)

    # Exercise catalog (JSON list of exercise definitions)
    CATALOG_PATH: Optional[Path] = Field(default=None)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")

    # HTTP surface
    CORS_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
    )
    # Header carrying the user id resolved by the upstream auth provider
    USER_HEADER: str = Field(default="X-User-Id")

    @property
    def catalog_path(self) -> Path:
        return self.CATALOG_PATH or DEFAULT_CATALOG_PATH


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the API server or CLI."""
    level_name = (level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)

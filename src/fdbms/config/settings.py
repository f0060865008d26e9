"""Configuration settings for the FDBMS billing core."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RATES_DIR = Path(__file__).resolve().parent / "rates"


class FlatSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Persistence
    storage_budget_bytes: int = Field(
        default=int(4.5 * 1024 * 1024), validation_alias="STORAGE_BUDGET_BYTES"
    )

    # Bill numbering
    bill_number_prefix: str = Field(default="M-1", validation_alias="BILL_NUMBER_PREFIX")

    # AG Office hand-off
    print_pause_seconds: float = Field(default=1.5, validation_alias="PRINT_PAUSE_SECONDS")

    # Rate schedules
    rates_dir: Path = Field(default=DEFAULT_RATES_DIR, validation_alias="RATES_DIR")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()

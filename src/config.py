from __future__ import annotations

from functools import cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
DB_FILE = ARTIFACTS_DIR / "rates.db"


class AppSettings(BaseSettings):
    exchange_api_url: str = "https://api.coinbase.com/v2/exchange-rates"
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    retry_attempts: int = Field(default=2, ge=0)
    retry_backoff_seconds: float = Field(default=0.5, ge=0)

    db_file: Path = DB_FILE
    db_echo: bool = False

    fetch_interval_seconds: float = Field(default=60.0, gt=0)
    scheduler_enabled: bool = True
    retention_days: int | None = Field(default=None, gt=0)

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@cache
def config() -> AppSettings:
    return AppSettings()

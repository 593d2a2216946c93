from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    journal_db_path: str = Field(default="data/journal.db", description="SQLite key-value database path")
    storage_key: str = Field(default="tradingJournalTrades", description="Key of the trade list slot")
    export_filename: str = Field(default="trading_journal_backup.json", description="Backup download file name")

    weekly_window_days: int = Field(default=7, description="Trailing window of the weekly rollup in days")

    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/journal.log", description="Log file path")

    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=5000, description="HTTP port")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    global _settings
    _settings = Settings()
    return _settings

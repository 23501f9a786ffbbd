from __future__ import annotations

from datetime import timedelta
from functools import cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.asset_id import AssetId

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
DB_FILE = ARTIFACTS_DIR / "ledger.db"


class AppSettings(BaseSettings):
    database_url: str = f"sqlite:///{DB_FILE}"
    echo_sql: bool = False
    home_currency: str = "CURRENCY:CAD"
    asset_search_limit: int = 10
    max_login_attempts: int = 3
    login_attempt_window_seconds: int = 60

    model_config = SettingsConfigDict(env_prefix="LEDGER_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def home_currency_id(self) -> AssetId:
        return AssetId.parse(self.home_currency)

    @property
    def login_attempt_window(self) -> timedelta:
        return timedelta(seconds=self.login_attempt_window_seconds)


@cache
def config() -> AppSettings:
    return AppSettings()


__all__ = ["AppSettings", "config"]

"""
Runtime configuration.

Values come from the environment (optionally a .env file) so the same build
runs against SQLite locally and PostgreSQL in deployment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigurationError

load_dotenv(find_dotenv(usecwd=True), override=False)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    database_echo: bool = False
    pending_ttl_minutes: int = 15
    pending_sweep_seconds: int = 60
    pin_max_attempts: int = 3
    recipient_search_limit: int = 50
    paystack_secret_key: Optional[str] = None
    paystack_api_url: str = "https://api.paystack.co"
    verification_timeout_seconds: float = 10.0
    default_currency: str = "NGN"
    log_level: str = "INFO"
    log_dir: Path = Path("logs")

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            database_url=os.getenv("DATABASE_URL"),
            database_echo=_env_bool("DATABASE_ECHO"),
            pending_ttl_minutes=_env_int("PENDING_TTL_MINUTES", 15),
            pending_sweep_seconds=_env_int("PENDING_SWEEP_SECONDS", 60),
            pin_max_attempts=_env_int("PIN_MAX_ATTEMPTS", 3),
            recipient_search_limit=_env_int("RECIPIENT_SEARCH_LIMIT", 50),
            paystack_secret_key=os.getenv("PAYSTACK_SECRET_KEY"),
            paystack_api_url=os.getenv("PAYSTACK_API_URL", "https://api.paystack.co"),
            verification_timeout_seconds=float(_env_int("VERIFICATION_TIMEOUT_SECONDS", 10)),
            default_currency=os.getenv("DEFAULT_CURRENCY", "NGN"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_dir=Path(os.getenv("LOG_DIR", "logs")),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.pending_ttl_minutes <= 0:
            raise ConfigurationError("PENDING_TTL_MINUTES must be positive")
        if self.pin_max_attempts < 1:
            raise ConfigurationError("PIN_MAX_ATTEMPTS must be at least 1")
        if self.recipient_search_limit < 1:
            raise ConfigurationError("RECIPIENT_SEARCH_LIMIT must be at least 1")

    def require_database_url(self) -> str:
        if not self.database_url:
            raise ConfigurationError("DATABASE_URL not set in environment or .env")
        return self.database_url


_SETTINGS_SINGLETON: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Build (and cache) the process-wide Settings instance.
    """
    global _SETTINGS_SINGLETON
    if _SETTINGS_SINGLETON is None:
        _SETTINGS_SINGLETON = Settings.from_env()
    return _SETTINGS_SINGLETON

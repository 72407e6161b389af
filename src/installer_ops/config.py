"""Configuration management for installer ops."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./installer_ops.db"


class ConfigurationError(ValueError):
    """Raised when an environment variable cannot be parsed."""

    def __init__(self, name: str, value: str, expected: str):
        self.name = name
        self.value = value
        super().__init__(f"{name}={value!r} is not a valid {expected}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(name, raw, "integer") from None


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name) or default
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ConfigurationError(name, raw, "decimal") from None


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment.

    Invoices are issued without VAT unless VAT_RATE says otherwise. The
    hours check waits ``hours_check_debounce_ms`` after the last change to a
    timesheet form before querying logged hours.
    """

    database_url: str
    app_version: str
    host: str
    port: int
    debug: bool
    log_level: str
    daily_hours_limit: Decimal
    hours_check_debounce_ms: int
    vat_rate: Decimal
    certificate_expiry_warning_days: int
    upload_dir: str

    @property
    def hours_check_debounce_seconds(self) -> float:
        return self.hours_check_debounce_ms / 1000

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables (and a ``.env`` file)."""
        load_dotenv()

        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            app_version=os.getenv("APP_VERSION", "0.1.0"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
            debug=_env_bool("DEBUG"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            daily_hours_limit=_env_decimal("DAILY_HOURS_LIMIT", "24"),
            hours_check_debounce_ms=_env_int("HOURS_CHECK_DEBOUNCE_MS", 500),
            vat_rate=_env_decimal("VAT_RATE", "0"),
            certificate_expiry_warning_days=_env_int("CERTIFICATE_EXPIRY_WARNING_DAYS", 30),
            upload_dir=os.getenv("UPLOAD_DIR", "./uploads"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


settings = get_settings()

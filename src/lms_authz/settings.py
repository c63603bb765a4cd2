"""Authorization core settings (conventional Pydantic v2)."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import TypeVar

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .paths import PROJECT_ROOT

ALLOWED_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
ALLOWED_LOG_FORMATS = frozenset({"console", "json"})
DEFAULT_DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DATABASE_URL = f"sqlite+aiosqlite:///{DEFAULT_DATA_DIR / 'lms_authz.sqlite'}"

# ---- Helpers ----------------------------------------------------------------

T = TypeVar("T")


def lms_settings_config() -> SettingsConfigDict:
    """Return the standard ``BaseSettings`` config dict."""

    return SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        env_prefix="LMS_AUTHZ_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        str_strip_whitespace=True,
    )


def create_settings_accessors(
    settings_type: type[T],
) -> tuple[Callable[[], T], Callable[[], T]]:
    """Create ``get_settings`` and ``reload_settings`` helpers for a settings class."""

    @lru_cache(maxsize=1)
    def _build() -> T:
        return settings_type()

    def get_settings() -> T:
        return _build()

    def reload_settings() -> T:
        _build.cache_clear()
        return _build()

    return get_settings, reload_settings


def normalize_log_format(value: str, *, env_var: str = "LMS_AUTHZ_LOG_FORMAT") -> str:
    normalized = value.strip().lower()
    if normalized not in ALLOWED_LOG_FORMATS:
        allowed = ", ".join(sorted(ALLOWED_LOG_FORMATS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


def normalize_log_level(value: str | None, *, env_var: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip().upper()
    if normalized not in ALLOWED_LOG_LEVELS:
        allowed = ", ".join(sorted(ALLOWED_LOG_LEVELS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


# ---- Settings ---------------------------------------------------------------


class Settings(BaseSettings):
    """Settings loaded from LMS_AUTHZ_* environment variables."""

    model_config = lms_settings_config()

    # Core
    app_name: str = "lms-authz"
    log_format: str = "console"
    log_level: str = "INFO"

    # Database
    database_url: str = DEFAULT_DATABASE_URL
    database_echo: bool = False
    database_log_level: str | None = None
    database_pool_size: int = Field(5, ge=1)
    database_max_overflow: int = Field(10, ge=0)
    database_pool_timeout: int = Field(30, gt=0)

    # Reconciliation
    sync_on_startup: bool = True
    bootstrap_superadmin_email: str = "superadmin@localhost"
    bootstrap_superadmin_display_name: str = "Super Administrator"
    bootstrap_superadmin_password: SecretStr | None = None

    # ---- Validators ----

    @field_validator("bootstrap_superadmin_email", mode="before")
    @classmethod
    def _normalize_bootstrap_email(cls, value: object) -> object:
        if value is None:
            return value
        raw = str(value).strip().lower()
        if not raw or "@" not in raw:
            raise ValueError("LMS_AUTHZ_BOOTSTRAP_SUPERADMIN_EMAIL must be an email address.")
        return raw

    @model_validator(mode="after")
    def _finalize(self) -> Settings:
        self.log_format = normalize_log_format(self.log_format)

        normalized_log_level = normalize_log_level(self.log_level, env_var="LMS_AUTHZ_LOG_LEVEL")
        if normalized_log_level is None:
            raise ValueError("LMS_AUTHZ_LOG_LEVEL must not be empty.")
        self.log_level = normalized_log_level

        self.database_log_level = normalize_log_level(
            self.database_log_level,
            env_var="LMS_AUTHZ_DATABASE_LOG_LEVEL",
        )

        if self.bootstrap_superadmin_password is not None:
            if not self.bootstrap_superadmin_password.get_secret_value().strip():
                self.bootstrap_superadmin_password = None
        return self


get_settings, reload_settings = create_settings_accessors(Settings)


__all__ = [
    "DEFAULT_DATABASE_URL",
    "Settings",
    "get_settings",
    "normalize_log_format",
    "normalize_log_level",
    "reload_settings",
]

"""Application configuration."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Database configuration."""

    url: str = "sqlite+aiosqlite:///data/agentur_crm.db"
    echo: bool = False


class SessionSettings(BaseModel):
    """Client-side session persistence.

    The signed-in user is serialized into a small JSON file, read at
    startup and removed at logout.
    """

    storage_path: str = "data/session.json"
    storage_key: str = "dashboard_user"


class FinanceSettings(BaseModel):
    """Bookkeeping defaults."""

    # Used until an admin stores "tax_rate" in the settings table
    default_tax_rate: float = 19.0
    currency: str = "EUR"


class AuditSettings(BaseModel):
    """Audit trail configuration."""

    read_limit: int = 100


class APISettings(BaseModel):
    """HTTP API configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = []
    # Header carrying the id of the signed-in team member
    user_header: str = "X-User-Id"


class Settings(BaseSettings):
    """Main application settings.

    Loaded from configs/default.yaml, configs/{CRM_ENV}.yaml and
    environment variables (CRM_*, nested via ``__``), highest last.
    """

    model_config = SettingsConfigDict(
        env_prefix="CRM_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    debug: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Subsystems
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    finance: FinanceSettings = Field(default_factory=FinanceSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    api: APISettings = Field(default_factory=APISettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings object loaded from config files and environment.
    """
    from dynaconf import Dynaconf

    config_dir = Path(os.getenv("CRM_CONFIG_DIR", "configs"))
    env = os.getenv("CRM_ENV", "development")

    settings_files = []
    if (config_dir / "default.yaml").exists():
        settings_files.append(str(config_dir / "default.yaml"))
    if (config_dir / f"{env}.yaml").exists():
        settings_files.append(str(config_dir / f"{env}.yaml"))

    dynaconf = Dynaconf(
        envvar_prefix="CRM",
        settings_files=settings_files,
        load_dotenv=True,
    )

    config_dict: dict[str, Any] = {}
    for key in dynaconf.keys():
        if not key.startswith("_"):
            value = dynaconf[key]
            config_dict[key.lower()] = _plain(value)

    config_dict["environment"] = env

    return Settings(**config_dict)


def _plain(value: Any) -> Any:
    """Turn Dynaconf boxes into plain dicts and lists for pydantic."""
    if isinstance(value, dict):
        return {str(k).lower(): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def validate_production_settings(settings: Settings) -> list[str]:
    """Validate settings for production readiness.

    Args:
        settings: Application settings to validate.

    Returns:
        List of validation error messages (empty if all valid).
    """
    errors: list[str] = []

    if settings.environment not in ("production", "staging", "prod"):
        return errors

    if settings.debug:
        errors.append("CRM_DEBUG must be false in production")

    if settings.database.url.startswith("sqlite") and ":memory:" in settings.database.url:
        errors.append("CRM_DATABASE__URL must point to a persistent database in production")

    if not 0 <= settings.finance.default_tax_rate <= 100:
        errors.append("CRM_FINANCE__DEFAULT_TAX_RATE must be between 0 and 100")

    return errors

"""Configuration management for the mold registry."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_REPO_ROOT = Path(__file__).resolve().parents[1]
_DEFAULT_CONFIG_PATH = _REPO_ROOT / "config" / "molds.yml"
_USER_CONFIG_PATHS = [
    Path("~/.config/molds/molds.yml").expanduser(),
    Path("/config/molds.yml"),
]
_USER_SECRETS_PATHS = [
    Path("~/.config/molds/secrets.yml").expanduser(),
    Path("/config/secrets.yml"),
]


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk, returning an empty mapping if missing."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def _yaml_settings_source(paths: list[Path]):
    """Create a Pydantic settings source for a list of YAML paths."""

    def source() -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for path in paths:
            _merge_nested(merged, _load_yaml(path))
        return merged

    return source


def _merge_nested(target: dict[str, Any], incoming: dict[str, Any]) -> None:
    """Merge nested mappings so later files only override the keys they set."""
    for key, value in incoming.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge_nested(current, value)
            continue
        target[key] = value


def _set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    """Set a dotted-path value on a nested mapping, creating containers."""
    parts = path.split(".")
    cursor = target
    for key in parts[:-1]:
        node = cursor.get(key)
        if not isinstance(node, dict):
            node = {}
            cursor[key] = node
        cursor = node
    cursor[parts[-1]] = value


def _parse_env_value(raw: str, kind: str) -> Any:
    """Parse an environment value into the requested primitive type."""
    if kind == "int":
        return int(raw)
    if kind == "bool":
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    return raw


def _env_settings_source():
    """Create a settings source that maps environment variables to config keys."""
    mapping = {
        "DATABASE_URL": ("database.url", "str"),
        "DATABASE_ECHO": ("database.echo", "bool"),
        "LOG_LEVEL": ("log_level", "str"),
        "LOG_JSON": ("log_json", "bool"),
        "MOLDS_STRICT_TRANSITIONS": ("registry.strict_transitions", "bool"),
        "MOLDS_LOG_PAGE_SIZE": ("registry.log_page_size", "int"),
        "USER_TIMEZONE": ("user.timezone", "str"),
    }

    def source() -> dict[str, Any]:
        data: dict[str, Any] = {}
        for env_key, (path, kind) in mapping.items():
            raw = os.environ.get(env_key)
            if raw is None:
                continue
            _set_nested_value(data, path, _parse_env_value(raw, kind))
        return data

    return source


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite:///molds.db"
    echo: bool = False

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Ensure the database URL is not blank."""
        if not value.strip():
            raise ValueError("database.url must not be blank.")
        return value.strip()


class RegistryConfig(BaseModel):
    """Mold registry behavior defaults."""

    strict_transitions: bool = True
    log_page_size: int = 200

    @field_validator("log_page_size")
    @classmethod
    def validate_log_page_size(cls, value: int) -> int:
        """Ensure the audit log page size is positive."""
        if value < 1:
            raise ValueError("registry.log_page_size must be >= 1.")
        return value


class UserConfig(BaseModel):
    """Operator presentation preferences."""

    timezone: str = "UTC"

    @model_validator(mode="after")
    def validate_timezone(self) -> "UserConfig":
        """Ensure the configured timezone is valid."""
        try:
            ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Invalid timezone: {self.timezone}") from exc
        return self


class Settings(BaseSettings):
    """Application settings loaded from YAML files and environment variables."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Layer settings sources in descending order of precedence."""
        return (
            init_settings,
            _env_settings_source(),
            _yaml_settings_source(_USER_SECRETS_PATHS),
            _yaml_settings_source(_USER_CONFIG_PATHS),
            _yaml_settings_source([_DEFAULT_CONFIG_PATH]),
        )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Database Configuration
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # Registry Behavior
    registry: RegistryConfig = Field(default_factory=RegistryConfig)

    # User Context
    user: UserConfig = Field(default_factory=UserConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Ensure the log level is a standard level name."""
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("log_level must be DEBUG, INFO, WARNING, ERROR, or CRITICAL.")
        return normalized

    @property
    def database_url(self) -> str:
        """Return the configured database URL."""
        return self.database.url


# Global settings instance
settings = Settings()

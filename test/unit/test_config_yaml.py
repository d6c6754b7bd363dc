"""Unit tests for YAML configuration loading."""

import pytest
from pydantic import ValidationError

import config as config_module

_ENV_KEYS = [
    "DATABASE_URL",
    "DATABASE_ECHO",
    "LOG_LEVEL",
    "LOG_JSON",
    "MOLDS_STRICT_TRANSITIONS",
    "MOLDS_LOG_PAGE_SIZE",
    "USER_TIMEZONE",
]


def _clear_env(monkeypatch, keys):
    """Clear environment variables for config tests."""
    for key in keys:
        monkeypatch.delenv(key, raising=False)


def _use_paths(monkeypatch, defaults, user_cfg, secrets):
    """Point the settings sources at temporary YAML files."""
    monkeypatch.setattr(config_module, "_DEFAULT_CONFIG_PATH", defaults)
    monkeypatch.setattr(config_module, "_USER_CONFIG_PATHS", [user_cfg])
    monkeypatch.setattr(config_module, "_USER_SECRETS_PATHS", [secrets])


def test_yaml_precedence(monkeypatch, tmp_path):
    """Environment variables override secrets, user, and default YAML."""
    defaults = tmp_path / "defaults.yml"
    user_cfg = tmp_path / "user.yml"
    secrets = tmp_path / "secrets.yml"

    defaults.write_text(
        "\n".join(
            [
                "log_level: debug",
                "database:",
                "  url: sqlite:///default.db",
                "registry:",
                "  strict_transitions: true",
                "  log_page_size: 10",
                "user:",
                "  timezone: UTC",
            ]
        ),
        encoding="utf-8",
    )
    user_cfg.write_text(
        "\n".join(
            [
                "database:",
                "  url: sqlite:///user.db",
                "registry:",
                "  log_page_size: 20",
                "user:",
                "  timezone: Asia/Taipei",
            ]
        ),
        encoding="utf-8",
    )
    secrets.write_text(
        "\n".join(
            [
                "database:",
                "  url: postgresql://molds:secret@db:5432/molds",
            ]
        ),
        encoding="utf-8",
    )

    _clear_env(monkeypatch, _ENV_KEYS)
    monkeypatch.setenv("MOLDS_LOG_PAGE_SIZE", "30")
    _use_paths(monkeypatch, defaults, user_cfg, secrets)

    settings = config_module.Settings()

    assert settings.log_level == "DEBUG"
    assert settings.database_url == "postgresql://molds:secret@db:5432/molds"
    assert settings.registry.log_page_size == 30
    assert settings.registry.strict_transitions is True
    assert settings.user.timezone == "Asia/Taipei"


def test_missing_yaml_files(monkeypatch, tmp_path):
    """Missing YAML files fall back to environment settings and defaults."""
    _clear_env(monkeypatch, _ENV_KEYS)
    monkeypatch.setenv("DATABASE_URL", "sqlite:///env.db")
    monkeypatch.setenv("MOLDS_STRICT_TRANSITIONS", "false")
    _use_paths(
        monkeypatch,
        tmp_path / "missing-default.yml",
        tmp_path / "missing-user.yml",
        tmp_path / "missing-secrets.yml",
    )

    settings = config_module.Settings()

    assert settings.database_url == "sqlite:///env.db"
    assert settings.registry.strict_transitions is False
    assert settings.log_level == "INFO"
    assert settings.user.timezone == "UTC"


def test_non_mapping_yaml_is_rejected(monkeypatch, tmp_path):
    """A YAML file that is not a mapping fails loudly."""
    defaults = tmp_path / "defaults.yml"
    defaults.write_text("- just\n- a list\n", encoding="utf-8")
    _clear_env(monkeypatch, _ENV_KEYS)
    _use_paths(monkeypatch, defaults, tmp_path / "u.yml", tmp_path / "s.yml")

    with pytest.raises(ValueError):
        config_module.Settings()


@pytest.mark.parametrize(
    ("env_key", "value"),
    [
        ("USER_TIMEZONE", "Mars/Olympus"),
        ("MOLDS_LOG_PAGE_SIZE", "0"),
        ("LOG_LEVEL", "chatty"),
        ("DATABASE_URL", "   "),
    ],
)
def test_invalid_values_are_rejected(monkeypatch, tmp_path, env_key, value):
    """Field validators reject unusable configuration."""
    _clear_env(monkeypatch, _ENV_KEYS)
    monkeypatch.setenv(env_key, value)
    _use_paths(monkeypatch, tmp_path / "d.yml", tmp_path / "u.yml", tmp_path / "s.yml")

    with pytest.raises(ValidationError):
        config_module.Settings()

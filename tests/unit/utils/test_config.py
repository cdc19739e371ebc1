"""Tests for environment configuration helpers."""

import os

import pytest

from utils.config import get_app_config, get_database_config, load_config, validate_config

EVENTDB_ENV = {
    "EVENTDB_HOST": "db.local",
    "EVENTDB_PORT": "5433",
    "EVENTDB_NAME": "events",
    "EVENTDB_USER": "reader",
    "EVENTDB_PASS": "secret",
}


@pytest.fixture
def eventdb_env(monkeypatch):
    for key, value in EVENTDB_ENV.items():
        monkeypatch.setenv(key, value)


def test_database_config_from_environment(eventdb_env) -> None:
    config = get_database_config()

    assert config == {
        "host": "db.local",
        "port": "5433",
        "database": "events",
        "user": "reader",
        "password": "secret",
    }
    assert validate_config() == []


def test_missing_database_settings_are_listed(monkeypatch) -> None:
    for key in EVENTDB_ENV:
        monkeypatch.delenv(key, raising=False)

    with pytest.raises(ValueError, match="host"):
        get_database_config()
    assert validate_config()[0].startswith("EVENTDB")


def test_app_config_defaults(monkeypatch) -> None:
    for key in ("TIMEZONE", "LOG_LEVEL", "DEFAULT_PADDING_MINUTES", "MAX_OPERATOR_CYCLE_HOURS", "DEFAULT_TIME_WINDOW_HOURS"):
        monkeypatch.delenv(key, raising=False)

    assert get_app_config() == {
        "timezone": "Europe/Copenhagen",
        "log_level": "INFO",
        "default_padding_minutes": 5,
        "max_operator_cycle_hours": 24.0,
        "default_time_window_hours": 8,
    }


def test_load_config_reads_env_file(tmp_path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("SESSION_ANALYTICS_TEST_MARKER=loaded\n")

    assert load_config(str(env_file)) is True
    assert os.environ.pop("SESSION_ANALYTICS_TEST_MARKER") == "loaded"

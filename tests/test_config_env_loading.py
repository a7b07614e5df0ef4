"""
Test environment-driven configuration and .env file loading.

Tests that settings come from prefixed environment variables, that a .env
file in the working directory (or a parent) is picked up, and that
already-set environment variables take precedence over it.
"""

import os

import pytest
from pydantic import ValidationError

from clinicai_client.core.config import (
    ApiSettings,
    PollingSettings,
    Settings,
    _load_env_file_if_available,
    get_settings,
)


def test_defaults(monkeypatch):
    """Polling defaults describe a 25 minute session with 1.5s..15s waits."""
    for name in ("CLINICAI_POLL_BASE_MS", "CLINICAI_POLL_CAP_MS", "CLINICAI_POLL_DEADLINE_MS", "CLINICAI_POLL_GROWTH_FACTOR"):
        monkeypatch.delenv(name, raising=False)

    polling = PollingSettings()
    assert polling.base_ms == 1500
    assert polling.growth_factor == 1.6
    assert polling.cap_ms == 15000
    assert polling.deadline_ms == 1_500_000


def test_prefixed_environment_variables(monkeypatch):
    """Test that CLINICAI_API_* and CLINICAI_POLL_* variables are read."""
    monkeypatch.setenv("CLINICAI_API_BASE_URL", "https://clinic.example.com/")
    monkeypatch.setenv("CLINICAI_API_DOCTOR_ID", "D42")
    monkeypatch.setenv("CLINICAI_POLL_BASE_MS", "250")
    monkeypatch.setenv("CLINICAI_POLL_DEADLINE_MS", "60000")

    settings = get_settings()

    assert settings.api.base_url == "https://clinic.example.com"
    assert settings.api.doctor_id == "D42"
    assert settings.polling.base_ms == 250
    assert settings.polling.deadline_ms == 60000
    assert get_settings() is settings


def test_env_file_is_loaded_without_overriding(monkeypatch, tmp_path):
    """Test that .env is discovered from a child directory and never overrides set variables."""
    monkeypatch.delenv("CLINICAI_API_BASE_URL", raising=False)
    monkeypatch.setenv("CLINICAI_API_DOCTOR_ID", "from-process")

    (tmp_path / ".env").write_text(
        "CLINICAI_API_BASE_URL=http://from-env-file:8000\nCLINICAI_API_DOCTOR_ID=from-env-file\n"
    )
    child = tmp_path / "nested" / "dir"
    child.mkdir(parents=True)
    monkeypatch.chdir(child)

    _load_env_file_if_available()
    try:
        assert os.getenv("CLINICAI_API_BASE_URL") == "http://from-env-file:8000"
        assert os.getenv("CLINICAI_API_DOCTOR_ID") == "from-process"
        assert ApiSettings().base_url == "http://from-env-file:8000"
    finally:
        os.environ.pop("CLINICAI_API_BASE_URL", None)


def test_invalid_base_url_rejected():
    with pytest.raises(ValidationError):
        ApiSettings(base_url="ftp://clinic.example.com")


@pytest.mark.parametrize(
    "overrides",
    [
        {"base_ms": 0},
        {"growth_factor": 0.5},
        {"base_ms": 5000, "cap_ms": 1000},
        {"deadline_ms": -1},
    ],
)
def test_invalid_polling_settings_rejected(overrides):
    with pytest.raises(ValidationError):
        PollingSettings(**overrides)


def test_app_env_validation(monkeypatch):
    monkeypatch.setenv("APP_ENV", "Production")
    assert Settings().is_production

    monkeypatch.setenv("APP_ENV", "moon")
    with pytest.raises(ValidationError):
        Settings()

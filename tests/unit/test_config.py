# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import AppConfig
from constants import POLL_INTERVAL_MS_DEFAULT, SERIAL_BAUD_RATE_DEFAULT, SESSION_QUOTA_DEFAULT


_VARS = (
    "SERIAL_PORT",
    "SERIAL_BAUD_RATE",
    "SESSION_QUOTA",
    "POLL_INTERVAL_MS",
    "SESSION_MAX_DURATION_S",
    "LLM_PROVIDER",
    "ENABLE_JSON_LOGS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_from_empty_env():
    config = AppConfig.load_from_env()

    assert config.serial_port is None
    assert config.serial_baud_rate == SERIAL_BAUD_RATE_DEFAULT
    assert config.session_quota == SESSION_QUOTA_DEFAULT
    assert config.poll_interval_ms == POLL_INTERVAL_MS_DEFAULT
    assert config.session_max_duration_s == 0
    assert config.enable_json_logs is True


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SERIAL_PORT", "COM4")
    monkeypatch.setenv("SERIAL_BAUD_RATE", "115200")
    monkeypatch.setenv("SESSION_QUOTA", "10")
    monkeypatch.setenv("SESSION_MAX_DURATION_S", "45.5")
    monkeypatch.setenv("LLM_PROVIDER", "groq")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")

    config = AppConfig.load_from_env()

    assert config.serial_port == "COM4"
    assert config.serial_baud_rate == 115200
    assert config.session_quota == 10
    assert config.session_max_duration_s == 45.5
    assert config.llm_provider == "groq"
    assert config.enable_json_logs is False


def test_blank_numeric_var_uses_default(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SESSION_QUOTA", "  ")

    assert AppConfig.load_from_env().session_quota == SESSION_QUOTA_DEFAULT


def test_unparseable_number_names_the_variable(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("POLL_INTERVAL_MS", "soon")

    with pytest.raises(ValueError, match="POLL_INTERVAL_MS"):
        AppConfig.load_from_env()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"session_quota": 0},
        {"poll_interval_ms": 0},
        {"session_max_duration_s": -1},
        {"serial_baud_rate": 0},
    ],
)
def test_invalid_values_are_rejected(kwargs):
    with pytest.raises(ValueError):
        AppConfig(**kwargs)

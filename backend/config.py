"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No session logic
- No protocol constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    POLL_INTERVAL_MS_DEFAULT,
    SERIAL_BAUD_RATE_DEFAULT,
    SESSION_MAX_DURATION_S_DEFAULT,
    SESSION_QUOTA_DEFAULT,
)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the app factory and each MonitoringGateway.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"

    # ------------------------------------------------------------------
    # Serial link
    # ------------------------------------------------------------------

    serial_port: str | None = None
    serial_baud_rate: int = SERIAL_BAUD_RATE_DEFAULT

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    session_quota: int = SESSION_QUOTA_DEFAULT
    poll_interval_ms: int = POLL_INTERVAL_MS_DEFAULT
    session_max_duration_s: float = SESSION_MAX_DURATION_S_DEFAULT

    # ------------------------------------------------------------------
    # LLM configuration (report collaborator)
    # ------------------------------------------------------------------

    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    openai_api_key: str | None = None
    groq_api_key: str | None = None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    def __post_init__(self) -> None:
        if self.session_quota < 1:
            raise ValueError("session_quota must be >= 1")
        if self.poll_interval_ms < 1:
            raise ValueError("poll_interval_ms must be >= 1")
        if self.session_max_duration_s < 0:
            raise ValueError("session_max_duration_s must be >= 0")
        if self.serial_baud_rate < 1:
            raise ValueError("serial_baud_rate must be >= 1")

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),

            serial_port=os.environ.get("SERIAL_PORT") or None,
            serial_baud_rate=_env_int("SERIAL_BAUD_RATE", SERIAL_BAUD_RATE_DEFAULT),

            session_quota=_env_int("SESSION_QUOTA", SESSION_QUOTA_DEFAULT),
            poll_interval_ms=_env_int("POLL_INTERVAL_MS", POLL_INTERVAL_MS_DEFAULT),
            session_max_duration_s=_env_float(
                "SESSION_MAX_DURATION_S", SESSION_MAX_DURATION_S_DEFAULT
            ),

            llm_provider=os.environ.get("LLM_PROVIDER", "openai"),
            llm_model=os.environ.get("LLM_MODEL", "gpt-4o-mini"),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            groq_api_key=os.environ.get("GROQ_API_KEY"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )

"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware and logging
- Initialize shared resources (report generator / OpenAI client)
- Register routes
"""

from __future__ import annotations

from typing import Any, Callable

import serial
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

from adapters.report.base import ReportGenerator
from adapters.report.openai_report import OpenAIReportGenerator
from config import AppConfig
from observability import logger
from observability.logger import log_event

from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    *,
    report_generator: ReportGenerator | None = None,
    serial_factory: Callable[..., Any] = serial.Serial,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations and fake collaborators
    - Environment-specific setup
    - ASGI server compatibility
    """
    if config is None:
        config = AppConfig.load_from_env()

    logger.configure(enabled=config.enable_json_logs)

    app = FastAPI(title="Vitals Monitor API")

    app.state.config = config
    app.state.serial_factory = serial_factory

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Report generator is built ONCE per process
    if report_generator is None:
        report_generator = build_report_generator(config)
    app.state.report_generator = report_generator

    # Routes
    register_routes(app)

    return app


def build_report_generator(config: AppConfig) -> ReportGenerator | None:
    """
    Build the report generator for the configured provider.

    Without an API key the monitor still runs; every hand-off then fails
    with a classified error instead of crashing the process.
    """
    api_key = config.groq_api_key if config.llm_provider.lower() == "groq" else config.openai_api_key
    if not api_key:
        log_event({
            "event_type": "REPORT_GENERATOR_DISABLED",
            "provider": config.llm_provider,
            "reason": "missing_api_key",
        })
        return None

    return OpenAIReportGenerator(
        client=build_llm_client(config),
        model=config.llm_model,
        provider=config.llm_provider,
    )


def build_llm_client(config: AppConfig) -> AsyncOpenAI:
    """Build an LLM client with the provider selected by environment variables."""
    if config.llm_provider.lower() == "groq":
        return AsyncOpenAI(
            api_key=config.groq_api_key,
            base_url="https://api.groq.com/openai/v1",
        )

    return AsyncOpenAI(api_key=config.openai_api_key)

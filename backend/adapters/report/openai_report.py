"""OpenAI-compatible report generator."""
from __future__ import annotations

import json
import time
from typing import Any

import openai

from adapters.report.base import ReportGenerator
from adapters.report.errors import ReportError, ReportErrorKind
from adapters.report.models import HealthReport, ReportContext
from adapters.report.prompts import build_report_messages, prompt_hash
from constants import REPORT_OVERLOADED_STATUS_CODES, REPORT_PROMPT_VERSION
from handoff.aggregate import VitalsAggregate
from observability.logger import log_event


class OpenAIReportGenerator(ReportGenerator):
    """
    Concrete report generator over the chat completions API.

    Works with any OpenAI-compatible endpoint (OpenAI, Groq); the client is
    built once per process by the app factory and injected here.

    Design notes:
    - One request per report, JSON response mode, no streaming.
    - Vendor exceptions are classified into ReportErrorKind; nothing is
      retried here.
    """

    def __init__(
        self,
        *,
        client: Any,
        model: str,
        provider: str,
    ) -> None:
        """
        Args:
            client:
                openai.AsyncOpenAI (or a compatible fake in tests).
            model:
                Model identifier string.
            provider:
                "openai" or "groq"; used for logging only.
        """
        self._client = client
        self._model = model
        self._provider = provider

    async def generate(
        self,
        aggregate: VitalsAggregate,
        context: ReportContext | None = None,
    ) -> HealthReport:
        try:
            messages = build_report_messages(aggregate, context)
        except ValueError as exc:
            raise ReportError(ReportErrorKind.NO_DATA, str(exc)) from exc

        log_event({
            "ts_ms": self._now_ms(),
            "event_type": "REPORT_REQUEST_STARTED",
            "provider": self._provider,
            "model": self._model,
            "prompt_version": REPORT_PROMPT_VERSION,
            "prompt_hash": prompt_hash(),
            "readings": aggregate.reading_count,
        })

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                response_format={"type": "json_object"},
            )
        except openai.RateLimitError as exc:
            raise ReportError(ReportErrorKind.OVERLOADED, str(exc)) from exc
        except openai.APIStatusError as exc:
            raise self._classify(exc, status_code=exc.status_code) from exc
        except openai.APIError as exc:
            raise self._classify(exc) from exc

        content = self._extract_content(response)
        try:
            return HealthReport.from_dict(json.loads(content))
        except json.JSONDecodeError as exc:
            raise ReportError(
                ReportErrorKind.INVALID_RESPONSE, f"response is not JSON: {exc}"
            ) from exc
        except ValueError as exc:
            raise ReportError(ReportErrorKind.INVALID_RESPONSE, str(exc)) from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _classify(exc: Exception, status_code: int | None = None) -> ReportError:
        if status_code in REPORT_OVERLOADED_STATUS_CODES or "overloaded" in str(exc).lower():
            return ReportError(ReportErrorKind.OVERLOADED, str(exc))
        return ReportError(ReportErrorKind.UPSTREAM, f"{type(exc).__name__}: {exc}")

    @staticmethod
    def _extract_content(response: Any) -> str:
        """
        Extract message text from vendor response (OpenAI format).
        """
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as exc:
            raise ReportError(
                ReportErrorKind.INVALID_RESPONSE, "response has no message content"
            ) from exc
        if not content:
            raise ReportError(ReportErrorKind.INVALID_RESPONSE, "empty response")
        return content

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

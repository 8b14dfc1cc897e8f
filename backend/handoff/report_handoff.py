"""
One-shot bridge from a completed session to the report generator.

Responsibilities:
- Submit a session's aggregate at most once per session run
- Short-circuit empty aggregates as NO_DATA (generator never called)
- Time every submission (METRIC_TIMER)
- Return failures as values; nothing is retried here

The reducer already guards completion with handoff_fired; the per-run
guard below keeps the bridge safe even if a caller bypasses the reducer.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from adapters.report.base import ReportGenerator
from adapters.report.errors import ReportError, ReportErrorKind
from adapters.report.models import HealthReport, ReportContext
from handoff.aggregate import VitalsAggregate
from observability.logger import log_event
from observability.metrics import timed


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class HandoffOutcome:
    """Result of one submission: exactly one of report / error is set."""
    session_run: int
    report: HealthReport | None = None
    error: ReportError | None = None

    @property
    def ok(self) -> bool:
        return self.report is not None


class ReportHandoff:
    """
    One hand-off bridge per monitoring session container.

    generator may be None when no report backend is configured; every
    submission then fails as UPSTREAM instead of raising.
    """

    def __init__(
        self,
        *,
        generator: ReportGenerator | None,
        session_id: str,
    ) -> None:
        self._generator = generator
        self._session_id = session_id
        self._fired_runs: set[int] = set()
        self.submit_count = 0

    def has_fired(self, session_run: int) -> bool:
        return session_run in self._fired_runs

    async def submit(
        self,
        *,
        session_run: int,
        aggregate: VitalsAggregate,
        context: ReportContext | None = None,
    ) -> HandoffOutcome | None:
        """
        Forward the aggregate to the generator.

        Returns None (and logs) for a duplicate submission of the same run.
        """
        if session_run in self._fired_runs:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "HANDOFF_DUPLICATE_IGNORED",
                "session_id": self._session_id,
                "session_run": session_run,
            })
            return None

        self._fired_runs.add(session_run)
        self.submit_count += 1

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "HANDOFF_SUBMITTED",
            "session_id": self._session_id,
            "session_run": session_run,
            "aggregate": aggregate.to_dict(),
            "has_context": context is not None,
        })

        if aggregate.is_empty:
            return self._failed(
                session_run,
                ReportError(ReportErrorKind.NO_DATA, "no valid readings were collected"),
            )

        if self._generator is None:
            return self._failed(
                session_run,
                ReportError(ReportErrorKind.UPSTREAM, "report generator is not configured"),
            )

        try:
            with timed(
                "report_handoff_latency",
                session_id=self._session_id,
                details={"session_run": session_run, "readings": aggregate.reading_count},
            ) as metric:
                report = await self._generator.generate(aggregate, context)
                metric["outcome"] = "ok"
        except ReportError as e:
            return self._failed(session_run, e)
        except Exception as e:  # pylint: disable=broad-exception-caught
            return self._failed(
                session_run,
                ReportError(ReportErrorKind.UPSTREAM, f"{type(e).__name__}: {e}"),
            )

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "HANDOFF_SUCCEEDED",
            "session_id": self._session_id,
            "session_run": session_run,
            "wellness_score": report.wellness_score,
        })
        return HandoffOutcome(session_run=session_run, report=report)

    def _failed(self, session_run: int, error: ReportError) -> HandoffOutcome:
        payload: dict[str, Any] = {
            "ts_ms": _now_ms(),
            "event_type": "HANDOFF_FAILED",
            "session_id": self._session_id,
            "session_run": session_run,
        }
        payload.update(error.to_dict())
        log_event(payload)
        return HandoffOutcome(session_run=session_run, error=error)

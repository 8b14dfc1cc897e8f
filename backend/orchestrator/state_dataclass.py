"""
Authoritative session state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass

from adapters.report.models import ReportContext
from constants import POLL_INTERVAL_MS_DEFAULT, SESSION_QUOTA_DEFAULT
from orchestrator.enums.completion import CompletionReason
from orchestrator.enums.state import State
from protocol.vitals import VitalSample


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot of all session-controller state."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    state: State = State.IDLE

    # Bumped on every StartRequested accepted in IDLE; stale gating key
    session_run: int = 0

    # ------------------------------------------------------------------
    # Policy (fixed for the connection, from AppConfig)
    # ------------------------------------------------------------------
    quota: int = SESSION_QUOTA_DEFAULT
    poll_interval_ms: int = POLL_INTERVAL_MS_DEFAULT

    # 0 disables the watchdog
    max_duration_ms: int = 0

    # ------------------------------------------------------------------
    # Per-session collection
    # ------------------------------------------------------------------
    valid_readings: int = 0

    # Most-recent samples, capped at SAMPLE_WINDOW_MAX
    samples: tuple[VitalSample, ...] = ()

    context: ReportContext | None = None

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------
    handoff_fired: bool = False
    completion_reason: CompletionReason | None = None

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: str | None = None

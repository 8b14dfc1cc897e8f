"""
Unified event definitions for the session reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Events produced on behalf of one monitoring session (timers, control
writes, hand-off results) carry session_run for stale gating.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from adapters.report.errors import ReportError
from adapters.report.models import HealthReport, ReportContext
from protocol.vitals import VitalSample


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_ENDED = "SESSION_ENDED"

    # ------------------------------------------------------------------
    # Client control
    # ------------------------------------------------------------------
    START_REQUESTED = "START_REQUESTED"
    STOP_REQUESTED = "STOP_REQUESTED"

    # ------------------------------------------------------------------
    # Device control / data
    # ------------------------------------------------------------------
    START_COMMAND_SENT = "START_COMMAND_SENT"
    SAMPLE_DECODED = "SAMPLE_DECODED"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    POLL_TICK = "POLL_TICK"
    WATCHDOG_TIMEOUT = "WATCHDOG_TIMEOUT"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    TRANSPORT_LOST = "TRANSPORT_LOST"
    TRANSPORT_CLOSED = "TRANSPORT_CLOSED"
    TRANSPORT_WRITE_FAILED = "TRANSPORT_WRITE_FAILED"

    # ------------------------------------------------------------------
    # Report hand-off
    # ------------------------------------------------------------------
    HANDOFF_SUCCEEDED = "HANDOFF_SUCCEEDED"
    HANDOFF_FAILED = "HANDOFF_FAILED"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class SessionRunEvent(Event):
    """
    Base class for events scoped to one monitoring session.

    The reducer MUST ignore events whose session_run does not match the
    current session_run.
    """

    session_run: int


# =============================================================================
# Connection Events
# =============================================================================

@dataclass(frozen=True)
class SessionStarted(Event):
    """Client connection established."""
    session_id: str


@dataclass(frozen=True)
class SessionEnded(Event):
    """Client connection gone."""
    session_id: str


# =============================================================================
# Client Control Events
# =============================================================================

@dataclass(frozen=True)
class StartRequested(Event):
    """Client asked to begin a monitoring session."""
    context: ReportContext | None = None


@dataclass(frozen=True)
class StopRequested(Event):
    """Explicit external stop, regardless of quota."""


# =============================================================================
# Device Events
# =============================================================================

@dataclass(frozen=True)
class StartCommandSent(SessionRunEvent):
    """The device accepted the start command byte."""


@dataclass(frozen=True)
class SampleDecoded(Event):
    """
    One decoded sample from the device stream.

    Not run-scoped: the device stream is continuous, and samples that
    arrive outside an active session are ignored by state.
    """
    sample: VitalSample


# =============================================================================
# Timer Events
# =============================================================================

@dataclass(frozen=True)
class PollTick(SessionRunEvent):
    """Poll interval elapsed; time to ask the device for the next reading."""


@dataclass(frozen=True)
class WatchdogTimeout(SessionRunEvent):
    """Maximum session duration elapsed before the quota was met."""


# =============================================================================
# Transport Events
# =============================================================================

@dataclass(frozen=True)
class TransportLost(Event):
    """Read failed without an intentional close (device went away)."""
    reason: str


@dataclass(frozen=True)
class TransportClosed(Event):
    """Client asked to close the serial port."""


@dataclass(frozen=True)
class TransportWriteFailed(SessionRunEvent):
    """A control byte could not be written."""
    reason: str


# =============================================================================
# Hand-off Events
# =============================================================================

@dataclass(frozen=True)
class HandoffSucceeded(SessionRunEvent):
    """Report generator returned a report."""
    report: HealthReport


@dataclass(frozen=True)
class HandoffFailed(SessionRunEvent):
    """Report generator failed (classified)."""
    error: ReportError

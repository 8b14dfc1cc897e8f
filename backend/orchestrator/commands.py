"""
Side-effect command definitions for the session orchestrator.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from adapters.report.models import ReportContext
from handoff.aggregate import VitalsAggregate
from orchestrator.enums.completion import CompletionReason
from orchestrator.events import EventType

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging, replay,
    and runtime dispatch.
    """

    # Device
    SEND_CONTROL = "SEND_CONTROL"
    CLOSE_TRANSPORT = "CLOSE_TRANSPORT"

    # Report hand-off
    SUBMIT_REPORT = "SUBMIT_REPORT"

    # Client
    SEND_JSON_TO_CLIENT = "SEND_JSON_TO_CLIENT"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Device Commands
# =============================================================================

@dataclass(frozen=True)
class SendControl(Command):
    """
    Write a control payload to the device.

    purpose "start" reports back StartCommandSent on success; any failure
    reports back TransportWriteFailed.
    """
    session_run: int
    payload: bytes
    purpose: str
    command_type: CommandType = CommandType.SEND_CONTROL


@dataclass(frozen=True)
class CloseTransport(Command):
    """Release the serial port (idempotent)."""
    reason: str
    command_type: CommandType = CommandType.CLOSE_TRANSPORT


# =============================================================================
# Hand-off Commands
# =============================================================================

@dataclass(frozen=True)
class SubmitReport(Command):
    """
    Hand the final aggregate to the report generator.

    Emitted at most once per session_run. The runtime must report back
    exactly one HandoffSucceeded or HandoffFailed.
    """
    session_run: int
    aggregate: VitalsAggregate
    context: ReportContext | None
    reason: CompletionReason
    command_type: CommandType = CommandType.SUBMIT_REPORT


# =============================================================================
# Client Commands
# =============================================================================

@dataclass(frozen=True)
class SendJSONToClient(Command):
    """
    Send a JSON control or UI message to the client.
    """
    message_type: str
    data: dict[str, Any]
    command_type: CommandType = CommandType.SEND_JSON_TO_CLIENT


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start a named timer.

    On expiration, the runtime must inject the specified timeout event.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT

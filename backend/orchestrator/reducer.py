"""
Pure session reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

# Reducer owns timer semantics; runtime must not cancel timers implicitly.
# Hand-off fires at most once per session_run: handoff_fired is checked and
# set inside this function, which the runtime calls serially.

from __future__ import annotations

from dataclasses import replace
from typing import Any

from constants import SAMPLE_WINDOW_MAX, START_COMMAND
from handoff.aggregate import build_aggregate
from orchestrator.commands import (
    CancelTimer,
    CloseTransport,
    Command,
    LogEvent,
    SendControl,
    SendJSONToClient,
    StartTimer,
    SubmitReport,
)
from orchestrator.enums.completion import CompletionReason
from orchestrator.enums.state import State
from orchestrator.events import (
    Event,
    EventType,
    HandoffFailed,
    HandoffSucceeded,
    PollTick,
    SampleDecoded,
    SessionEnded,
    SessionRunEvent,
    SessionStarted,
    StartCommandSent,
    StartRequested,
    StopRequested,
    TransportClosed,
    TransportLost,
    TransportWriteFailed,
    WatchdogTimeout,
)
from orchestrator.state_dataclass import SessionState


# =============================================================================
# Timer IDs
# =============================================================================

TIMER_POLL = "poll_tick"
TIMER_WATCHDOG = "session_watchdog"

_ACTIVE_STATES = (State.STARTING, State.MONITORING)


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: SessionState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": state.state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "session_run": state.session_run,
            "valid_readings": state.valid_readings,
            "quota": state.quota,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _state_changed(
    old: SessionState, new: SessionState, event: Event, source: str
) -> LogEvent:
    return _log(
        new,
        event,
        "state_changed",
        {
            "from_state": old.state.value,
            "to_state": new.state.value,
            "source": source,
        },
    )


def _ignore(
    state: SessionState, event: Event, reason: str
) -> tuple[SessionState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _cancel_session_timers() -> tuple[Command, ...]:
    return (CancelTimer(timer_id=TIMER_POLL), CancelTimer(timer_id=TIMER_WATCHDOG))


# =============================================================================
# Transitions
# =============================================================================

def _start(
    state: SessionState, event: StartRequested
) -> tuple[SessionState, tuple[Command, ...]]:
    run = state.session_run + 1
    new_state = replace(
        state,
        state=State.STARTING,
        session_run=run,
        valid_readings=0,
        samples=(),
        context=event.context,
        handoff_fired=False,
        completion_reason=None,
        last_error=None,
    )

    # Timers before SendControl: a write failure must find them armed
    cmds: list[Command] = []
    if state.max_duration_ms > 0:
        cmds.append(
            StartTimer(
                timer_id=TIMER_WATCHDOG,
                duration_ms=state.max_duration_ms,
                timeout_event_type=EventType.WATCHDOG_TIMEOUT,
            )
        )
    cmds.append(SendControl(session_run=run, payload=START_COMMAND, purpose="start"))

    return new_state, _logs_last(tuple(cmds) + (
        _log(
            new_state,
            event,
            "session_reset",
            {
                "has_context": event.context is not None,
                "watchdog_ms": state.max_duration_ms,
            },
        ),
        _state_changed(state, new_state, event, "start_requested"),
    ))


def _accept_sample(
    state: SessionState, event: SampleDecoded
) -> tuple[SessionState, tuple[Command, ...]]:
    sample = event.sample
    valid = sample.is_valid
    new_state = replace(
        state,
        samples=(state.samples + (sample,))[-SAMPLE_WINDOW_MAX:],
        valid_readings=state.valid_readings + (1 if valid else 0),
    )

    cmds: tuple[Command, ...] = (
        SendJSONToClient(
            message_type="SAMPLE",
            data={
                "session_run": new_state.session_run,
                "sample": sample.to_wire(),
                "valid": valid,
                "valid_readings": new_state.valid_readings,
                "quota": new_state.quota,
            },
        ),
        _log(
            new_state,
            event,
            "sample_accepted" if valid else "sample_not_counted",
            {"frame_index": sample.frame_index, "batch_size": sample.batch_size},
        ),
    )

    if new_state.valid_readings >= new_state.quota:
        completed_state, completion_cmds = _complete(
            new_state, event, CompletionReason.QUOTA_MET
        )
        return completed_state, _logs_last(cmds + completion_cmds)

    return new_state, cmds


def _complete(
    state: SessionState, event: Event, reason: CompletionReason
) -> tuple[SessionState, tuple[Command, ...]]:
    """
    Enter COMPLETING and submit the hand-off.

    Check-and-set on handoff_fired: a second trigger for the same session
    (quota racing an explicit stop) is ignored here.
    """
    if state.handoff_fired:
        return _ignore(state, event, "handoff_already_fired")

    aggregate = build_aggregate(state.samples)
    new_state = replace(
        state,
        state=State.COMPLETING,
        handoff_fired=True,
        completion_reason=reason,
        last_error="watchdog_timeout" if reason is CompletionReason.WATCHDOG else state.last_error,
    )

    return new_state, _logs_last(_cancel_session_timers() + (
        SubmitReport(
            session_run=state.session_run,
            aggregate=aggregate,
            context=state.context,
            reason=reason,
        ),
        _log(
            new_state,
            event,
            "handoff_submitted",
            {
                "reason": reason.value,
                "aggregate_source": aggregate.source,
                "aggregate_readings": aggregate.reading_count,
            },
        ),
        _state_changed(state, new_state, event, f"complete:{reason.value.lower()}"),
    ))


def _abort(
    state: SessionState,
    event: Event,
    error: str,
    *,
    notify: bool,
) -> tuple[SessionState, tuple[Command, ...]]:
    """
    Tear an active session down without a hand-off (transport failure).
    """
    new_state = replace(state, state=State.IDLE, last_error=error)

    cmds: tuple[Command, ...] = _cancel_session_timers() + (
        CloseTransport(reason=error),
    )
    if notify:
        cmds += (
            SendJSONToClient(
                message_type="ERROR",
                data={"session_run": state.session_run, "message": error},
            ),
        )

    return new_state, _logs_last(cmds + (
        _log(new_state, event, "session_aborted", {"error": error}),
        _state_changed(state, new_state, event, "abort"),
    ))


def _finish(
    state: SessionState, event: HandoffSucceeded | HandoffFailed
) -> tuple[SessionState, tuple[Command, ...]]:
    new_state = replace(state, state=State.IDLE)
    reason = state.completion_reason.value if state.completion_reason else None

    if isinstance(event, HandoffSucceeded):
        notify = SendJSONToClient(
            message_type="REPORT",
            data={
                "session_run": event.session_run,
                "reason": reason,
                "report": event.report.to_dict(),
            },
        )
        decision = "handoff_succeeded"
        details: dict[str, Any] = {"wellness_score": event.report.wellness_score}
    else:
        notify = SendJSONToClient(
            message_type="REPORT_ERROR",
            data={
                "session_run": event.session_run,
                "reason": reason,
                **event.error.to_dict(),
            },
        )
        decision = "handoff_failed"
        details = {"kind": event.error.kind.value}

    return new_state, _logs_last((
        notify,
        _log(new_state, event, decision, details),
        _state_changed(state, new_state, event, decision),
    ))


# =============================================================================
# Reducer
# =============================================================================

def reduce(
    state: SessionState, event: Event
) -> tuple[SessionState, tuple[Command, ...]]:
    """
    Pure reducer for the monitoring-session state machine.

    Given the current session state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Version-safe: ignores events with a stale session_run
    """
    if isinstance(event, SessionStarted):
        return state, (
            _log(state, event, "session_started", {"session_id": event.session_id}),
        )

    if isinstance(event, SessionEnded):
        return state, (
            _log(state, event, "session_ended", {"session_id": event.session_id}),
        )

    if isinstance(event, SessionRunEvent) and event.session_run != state.session_run:
        return _ignore(state, event, "stale_session_run")

    # ------------------------------------------------------------------
    # Transport failures (any state)
    # ------------------------------------------------------------------
    if isinstance(event, (TransportLost, TransportClosed)):
        lost = isinstance(event, TransportLost)
        error = "disconnected" if lost else "transport_closed"
        if state.state in _ACTIVE_STATES:
            return _abort(state, event, error, notify=lost)
        # COMPLETING keeps going: the hand-off does not need the device
        cmds: tuple[Command, ...] = (CloseTransport(reason=error),)
        if lost:
            cmds += (
                SendJSONToClient(message_type="ERROR", data={"message": error}),
            )
        return state, cmds + (
            _log(state, event, "transport_down_outside_session", {"error": error}),
        )

    # ------------------------------------------------------------------
    # IDLE
    # ------------------------------------------------------------------
    if state.state is State.IDLE:
        if isinstance(event, StartRequested):
            return _start(state, event)

        if isinstance(event, StopRequested):
            return state, (_log(state, event, "stop_noop_in_idle"),)

        if isinstance(event, SampleDecoded):
            return _ignore(state, event, "sample_outside_session")

        return _ignore(state, event, "not_applicable_in_idle")

    # ------------------------------------------------------------------
    # STARTING / MONITORING
    # ------------------------------------------------------------------
    if state.state in _ACTIVE_STATES:
        if isinstance(event, StartRequested):
            return _ignore(state, event, "session_already_active")

        if isinstance(event, SampleDecoded):
            return _accept_sample(state, event)

        if isinstance(event, StopRequested):
            return _complete(state, event, CompletionReason.STOPPED)

        if isinstance(event, WatchdogTimeout):
            return _complete(state, event, CompletionReason.WATCHDOG)

        if isinstance(event, TransportWriteFailed):
            return _abort(state, event, f"write_failed: {event.reason}", notify=True)

        if isinstance(event, StartCommandSent):
            if state.state is not State.STARTING:
                return _ignore(state, event, "already_monitoring")
            new_state = replace(state, state=State.MONITORING)
            return new_state, _logs_last((
                StartTimer(
                    timer_id=TIMER_POLL,
                    duration_ms=state.poll_interval_ms,
                    timeout_event_type=EventType.POLL_TICK,
                ),
                _state_changed(state, new_state, event, "start_command_sent"),
            ))

        if isinstance(event, PollTick):
            if state.state is not State.MONITORING:
                return _ignore(state, event, "poll_before_monitoring")
            return state, (
                StartTimer(
                    timer_id=TIMER_POLL,
                    duration_ms=state.poll_interval_ms,
                    timeout_event_type=EventType.POLL_TICK,
                ),
                SendControl(
                    session_run=state.session_run,
                    payload=START_COMMAND,
                    purpose="poll",
                ),
            )

        return _ignore(state, event, f"not_applicable_in_{state.state.value.lower()}")

    # ------------------------------------------------------------------
    # COMPLETING
    # ------------------------------------------------------------------
    if isinstance(event, (HandoffSucceeded, HandoffFailed)):
        return _finish(state, event)

    if isinstance(event, (StopRequested, WatchdogTimeout, SampleDecoded)):
        return _ignore(state, event, "handoff_already_fired")

    return _ignore(state, event, "not_applicable_in_completing")

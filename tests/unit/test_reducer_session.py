"""
Session reducer semantics.

Reducer-only guarantees:
- Quota counts valid samples only; reaching it submits exactly one hand-off
- Stale session_run events are ignored
- Transport failures abort without a hand-off
"""

from adapters.report.errors import ReportError, ReportErrorKind
from adapters.report.models import HealthReport, ReportContext
from constants import START_COMMAND
from orchestrator.commands import (
    CancelTimer,
    CloseTransport,
    LogEvent,
    SendControl,
    SendJSONToClient,
    StartTimer,
    SubmitReport,
)
from orchestrator.enums.completion import CompletionReason
from orchestrator.enums.state import State
from orchestrator.events import (
    EventType,
    HandoffFailed,
    HandoffSucceeded,
    PollTick,
    SampleDecoded,
    StartCommandSent,
    StartRequested,
    StopRequested,
    TransportClosed,
    TransportLost,
    TransportWriteFailed,
    WatchdogTimeout,
)
from orchestrator.reducer import TIMER_POLL, TIMER_WATCHDOG, reduce
from orchestrator.state_dataclass import SessionState

from fakes import REPORT_JSON, batch_sample, scalar_sample


def _start(state: SessionState, context: ReportContext | None = None):
    return reduce(
        state,
        StartRequested(event_type=EventType.START_REQUESTED, ts_ms=0, context=context),
    )


def _sample(sample) -> SampleDecoded:
    return SampleDecoded(event_type=EventType.SAMPLE_DECODED, ts_ms=0, sample=sample)


def _stop() -> StopRequested:
    return StopRequested(event_type=EventType.STOP_REQUESTED, ts_ms=0)


def _monitoring(**kwargs) -> SessionState:
    state, _ = _start(SessionState(**kwargs))
    state, _ = reduce(
        state,
        StartCommandSent(
            event_type=EventType.START_COMMAND_SENT, ts_ms=0, session_run=state.session_run
        ),
    )
    return state


def _of_type(cmds, cls):
    return [c for c in cmds if isinstance(c, cls)]


def _decisions(cmds):
    return [c.event["decision"] for c in cmds if isinstance(c, LogEvent)]


# ------------------------------------------------------------------
# Start
# ------------------------------------------------------------------

def test_start_resets_session_and_sends_start_byte():
    old = SessionState(session_run=3, valid_readings=4, handoff_fired=True, last_error="x")
    context = ReportContext(profile="runner")

    new_state, cmds = _start(old, context)

    assert new_state.state is State.STARTING
    assert new_state.session_run == 4
    assert new_state.valid_readings == 0
    assert new_state.samples == ()
    assert new_state.handoff_fired is False
    assert new_state.last_error is None
    assert new_state.context == context

    sends = _of_type(cmds, SendControl)
    assert sends == [SendControl(session_run=4, payload=START_COMMAND, purpose="start")]
    assert isinstance(cmds[-1], LogEvent)
    assert cmds[-1].event["decision"] == "state_changed"


def test_start_arms_watchdog_before_send_when_configured():
    _, cmds = _start(SessionState(max_duration_ms=30_000))

    kinds = [type(c) for c in cmds if not isinstance(c, LogEvent)]
    assert kinds == [StartTimer, SendControl]
    assert cmds[0].timer_id == TIMER_WATCHDOG
    assert cmds[0].duration_ms == 30_000


def test_start_without_watchdog_arms_no_timer():
    _, cmds = _start(SessionState())

    assert not _of_type(cmds, StartTimer)


def test_start_while_active_is_ignored():
    state = _monitoring()

    new_state, cmds = _start(state)

    assert new_state == state
    assert _decisions(cmds) == ["ignore"]


def test_start_command_sent_enters_monitoring_and_arms_poll():
    state = _monitoring(poll_interval_ms=250)

    assert state.state is State.MONITORING

    _, cmds = reduce(
        state,
        PollTick(event_type=EventType.POLL_TICK, ts_ms=0, session_run=state.session_run),
    )
    timer, send = cmds
    assert timer == StartTimer(
        timer_id=TIMER_POLL, duration_ms=250, timeout_event_type=EventType.POLL_TICK
    )
    assert send.purpose == "poll"
    assert send.payload == START_COMMAND


# ------------------------------------------------------------------
# Quota and hand-off
# ------------------------------------------------------------------

def test_quota_counts_only_valid_samples():
    state = _monitoring(quota=5)
    invalid = scalar_sample(hr=0)

    submits = []
    for _ in range(4):
        state, cmds = reduce(state, _sample(invalid))
        submits += _of_type(cmds, SubmitReport)
        state, cmds = reduce(state, _sample(scalar_sample()))
        submits += _of_type(cmds, SubmitReport)

    assert state.valid_readings == 4
    assert state.state is State.MONITORING
    assert not submits

    state, cmds = reduce(state, _sample(scalar_sample(hr=80)))

    assert state.valid_readings == 5
    assert state.state is State.COMPLETING
    assert state.completion_reason is CompletionReason.QUOTA_MET
    submits = _of_type(cmds, SubmitReport)
    assert len(submits) == 1
    assert submits[0].aggregate.reading_count == 5
    assert submits[0].aggregate.heart_rate[-1] == 80.0
    assert {c.timer_id for c in _of_type(cmds, CancelTimer)} == {TIMER_POLL, TIMER_WATCHDOG}


def test_every_sample_is_forwarded_to_client():
    state = _monitoring(quota=5)

    _, cmds = reduce(state, _sample(scalar_sample(spo2=0)))

    (msg,) = _of_type(cmds, SendJSONToClient)
    assert msg.message_type == "SAMPLE"
    assert msg.data["valid"] is False
    assert msg.data["valid_readings"] == 0
    assert msg.data["quota"] == 5
    assert _decisions(cmds) == ["sample_not_counted"]


def test_stop_submits_with_partial_data():
    state = _monitoring(quota=5)
    state, _ = reduce(state, _sample(scalar_sample()))

    state, cmds = reduce(state, _stop())

    assert state.state is State.COMPLETING
    assert state.completion_reason is CompletionReason.STOPPED
    (submit,) = _of_type(cmds, SubmitReport)
    assert submit.aggregate.reading_count == 1
    assert submit.reason is CompletionReason.STOPPED


def test_stop_during_completing_fires_nothing():
    state = _monitoring(quota=1)
    state, cmds = reduce(state, _sample(scalar_sample()))
    assert len(_of_type(cmds, SubmitReport)) == 1

    for event in (
        _stop(),
        _sample(scalar_sample()),
        WatchdogTimeout(
            event_type=EventType.WATCHDOG_TIMEOUT, ts_ms=0, session_run=state.session_run
        ),
    ):
        new_state, cmds = reduce(state, event)
        assert new_state == state
        assert not _of_type(cmds, SubmitReport)
        assert cmds[0].event["details"]["reason"] == "handoff_already_fired"


def test_batch_sample_counts_once_and_becomes_aggregate():
    state = _monitoring(quota=2)
    state, _ = reduce(state, _sample(scalar_sample(hr=70)))

    state, cmds = reduce(
        state,
        _sample(batch_sample((74, 75, 76), (96, 97, 98), (1.1, 1.2, 1.3), (2.0, 2.1, 2.2))),
    )

    (submit,) = _of_type(cmds, SubmitReport)
    assert submit.aggregate.source == "batch"
    assert submit.aggregate.heart_rate == (74.0, 75.0, 76.0)


def test_watchdog_completes_with_error_marker():
    state = _monitoring(quota=5, max_duration_ms=1_000)

    state, cmds = reduce(
        state,
        WatchdogTimeout(
            event_type=EventType.WATCHDOG_TIMEOUT, ts_ms=0, session_run=state.session_run
        ),
    )

    assert state.state is State.COMPLETING
    assert state.last_error == "watchdog_timeout"
    (submit,) = _of_type(cmds, SubmitReport)
    assert submit.aggregate.is_empty
    assert submit.reason is CompletionReason.WATCHDOG


def test_handoff_success_returns_to_idle_with_report():
    state = _monitoring(quota=1)
    state, _ = reduce(state, _sample(scalar_sample()))
    report = HealthReport.from_dict(REPORT_JSON)

    state, cmds = reduce(
        state,
        HandoffSucceeded(
            event_type=EventType.HANDOFF_SUCCEEDED,
            ts_ms=0,
            session_run=state.session_run,
            report=report,
        ),
    )

    assert state.state is State.IDLE
    (msg,) = _of_type(cmds, SendJSONToClient)
    assert msg.message_type == "REPORT"
    assert msg.data["reason"] == "QUOTA_MET"
    assert msg.data["report"]["wellnessScore"] == 72


def test_handoff_failure_reports_classified_error():
    state = _monitoring(quota=1)
    state, _ = reduce(state, _stop())

    state, cmds = reduce(
        state,
        HandoffFailed(
            event_type=EventType.HANDOFF_FAILED,
            ts_ms=0,
            session_run=state.session_run,
            error=ReportError(ReportErrorKind.OVERLOADED, "503"),
        ),
    )

    assert state.state is State.IDLE
    (msg,) = _of_type(cmds, SendJSONToClient)
    assert msg.message_type == "REPORT_ERROR"
    assert msg.data["kind"] == "overloaded"
    assert "overloaded" in msg.data["message"]


# ------------------------------------------------------------------
# Stale gating and idle behavior
# ------------------------------------------------------------------

def test_stale_session_run_is_ignored():
    state = _monitoring()

    for event in (
        PollTick(event_type=EventType.POLL_TICK, ts_ms=0, session_run=state.session_run - 1),
        TransportWriteFailed(
            event_type=EventType.TRANSPORT_WRITE_FAILED,
            ts_ms=0,
            session_run=state.session_run + 1,
            reason="gone",
        ),
    ):
        new_state, cmds = reduce(state, event)
        assert new_state == state
        assert len(cmds) == 1
        assert cmds[0].event["details"]["reason"] == "stale_session_run"


def test_stop_in_idle_is_noop():
    state = SessionState()

    new_state, cmds = reduce(state, _stop())

    assert new_state == state
    assert _decisions(cmds) == ["stop_noop_in_idle"]


def test_sample_in_idle_is_not_counted():
    state = SessionState()

    new_state, cmds = reduce(state, _sample(scalar_sample()))

    assert new_state.valid_readings == 0
    assert not _of_type(cmds, SendJSONToClient)


# ------------------------------------------------------------------
# Transport failures
# ------------------------------------------------------------------

def test_transport_lost_aborts_without_handoff():
    state = _monitoring()
    state, _ = reduce(state, _sample(scalar_sample()))

    new_state, cmds = reduce(
        state, TransportLost(event_type=EventType.TRANSPORT_LOST, ts_ms=0, reason="unplugged")
    )

    assert new_state.state is State.IDLE
    assert new_state.last_error == "disconnected"
    assert not _of_type(cmds, SubmitReport)
    assert _of_type(cmds, CloseTransport)
    (msg,) = _of_type(cmds, SendJSONToClient)
    assert msg.message_type == "ERROR"


def test_transport_closed_aborts_silently():
    state = _monitoring()

    new_state, cmds = reduce(
        state, TransportClosed(event_type=EventType.TRANSPORT_CLOSED, ts_ms=0)
    )

    assert new_state.state is State.IDLE
    assert new_state.last_error == "transport_closed"
    assert not _of_type(cmds, SendJSONToClient)


def test_transport_lost_while_completing_keeps_handoff():
    state = _monitoring(quota=1)
    state, _ = reduce(state, _sample(scalar_sample()))

    new_state, cmds = reduce(
        state, TransportLost(event_type=EventType.TRANSPORT_LOST, ts_ms=0, reason="unplugged")
    )

    assert new_state == state
    assert _decisions(cmds) == ["transport_down_outside_session"]


def test_write_failure_aborts_and_cancels_timers():
    state = _monitoring(max_duration_ms=5_000)

    new_state, cmds = reduce(
        state,
        TransportWriteFailed(
            event_type=EventType.TRANSPORT_WRITE_FAILED,
            ts_ms=0,
            session_run=state.session_run,
            reason="device unplugged",
        ),
    )

    assert new_state.state is State.IDLE
    assert new_state.last_error == "write_failed: device unplugged"
    assert {c.timer_id for c in _of_type(cmds, CancelTimer)} == {TIMER_POLL, TIMER_WATCHDOG}

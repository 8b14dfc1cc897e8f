# pylint: disable=missing-module-docstring,missing-function-docstring

from orchestrator.commands import LogEvent
from orchestrator.enums.state import State
from orchestrator.events import EventType, StartRequested, StopRequested
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import SessionState


def test_reducer_emits_logevent_with_required_fields():
    state = SessionState(state=State.IDLE)

    event = StopRequested(
        event_type=EventType.STOP_REQUESTED,
        ts_ms=123,
    )

    _, commands = reduce(state, event)

    log_events = [c for c in commands if isinstance(c, LogEvent)]
    assert log_events, "Reducer must emit at least one LogEvent"

    payload = log_events[0].event

    for key in (
        "ts_ms",
        "state",
        "event_type",
        "decision",
        "session_run",
        "valid_readings",
        "quota",
        "details",
    ):
        assert key in payload

    assert payload["ts_ms"] == 123
    assert payload["event_type"] == "STOP_REQUESTED"


def test_state_change_is_logged_last():
    state = SessionState()

    _, commands = reduce(
        state, StartRequested(event_type=EventType.START_REQUESTED, ts_ms=1)
    )

    last = commands[-1]
    assert isinstance(last, LogEvent)
    assert last.event["decision"] == "state_changed"
    assert last.event["details"] == {
        "from_state": "IDLE",
        "to_state": "STARTING",
        "source": "start_requested",
    }

"""
Runtime execution shell for a single monitoring session.

Responsibilities:
- Own session state
- Call pure reducer
- Execute commands with side effects (control writes, hand-off, timers)
- Schedule and cancel timers
- Convert timer expiry and side-effect outcomes into events
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from observability.logger import log_event
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
from orchestrator.events import (
    Event,
    EventType,
    HandoffFailed,
    HandoffSucceeded,
    PollTick,
    StartCommandSent,
    TransportWriteFailed,
    WatchdogTimeout,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import SessionState
from transport.errors import WriteError


if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Runtime:
    """
    Runtime execution boundary for a single monitoring session.

    Responsibilities:
    - Own the authoritative session state
    - Act as the universal event sink for the session
      (gateway events, read-loop samples, timer events, hand-off results)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - State transitions are serialized and deterministic
    - All side effects occur *after* state has been updated
    - Runtime never performs orchestration logic itself
    - Timers and the hand-off task emit events back into handle_event
      (single entry point)
    """

    def __init__(
        self,
        *,
        initial_state: SessionState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._handoff_tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> SessionState:
        """
        Return the current immutable session state.

        Consumers must never modify this state directly.
        """
        return self._state

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Swap in the new session state
        3. Push a STATUS message to the client if the control state moved
        4. Execute all emitted commands sequentially

        The reducer call and the state swap run without an await between
        them, so the check-and-set decisions the reducer makes are atomic
        with respect to the event loop.
        """
        prev_state = self._state.state
        new_state, commands = reduce(self._state, event)
        self._state = new_state

        if new_state.state is not prev_state:
            self._ctx.enqueue_control(self._ctx.session.status_message())

        for cmd in commands:
            await self._execute_command(cmd)

    async def wait_for_handoff(self) -> None:
        """Wait until every in-flight hand-off task has reported back."""
        while self._handoff_tasks:
            await asyncio.gather(*self._handoff_tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime.

        Cancels all in-flight timers and hand-off tasks and waits for them
        to complete. Called by gateway on client disconnect.
        """
        tasks = list(self._timers.values()) + list(self._handoff_tasks)

        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

        for task in self._handoff_tasks:
            task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._ctx.session_id,
                "connection_status": self._ctx.connection_status.value,
            })

        elif isinstance(cmd, SendControl):
            await self._send_control(cmd)

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        elif isinstance(cmd, SubmitReport):
            task = asyncio.create_task(self._run_handoff(cmd))
            self._handoff_tasks.add(task)
            task.add_done_callback(self._handoff_tasks.discard)

        elif isinstance(cmd, SendJSONToClient):
            self._ctx.enqueue_control({
                "type": cmd.message_type,
                "ts_ms": _now_ms(),
                **cmd.data,
            })

        elif isinstance(cmd, CloseTransport):
            transport = self._ctx.transport
            if transport is not None:
                await transport.close()
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "TRANSPORT_CLOSE_EXECUTED",
                "session_id": self._ctx.session_id,
                "reason": cmd.reason,
            })

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COMMAND_NOT_IMPLEMENTED",
                "session_id": self._ctx.session_id,
                "command_type": type(cmd).__name__,
            })

    async def _send_control(self, cmd: SendControl) -> None:
        transport = self._ctx.transport
        try:
            if transport is None:
                raise WriteError("no transport attached")
            await transport.write(cmd.payload)
        except WriteError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CONTROL_WRITE_FAILED",
                "session_id": self._ctx.session_id,
                "session_run": cmd.session_run,
                "purpose": cmd.purpose,
                "error": str(e),
            })
            await self.handle_event(
                TransportWriteFailed(
                    event_type=EventType.TRANSPORT_WRITE_FAILED,
                    ts_ms=_now_ms(),
                    session_run=cmd.session_run,
                    reason=str(e),
                )
            )
            return

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONTROL_SENT",
            "session_id": self._ctx.session_id,
            "session_run": cmd.session_run,
            "purpose": cmd.purpose,
        })

        if cmd.purpose == "start":
            await self.handle_event(
                StartCommandSent(
                    event_type=EventType.START_COMMAND_SENT,
                    ts_ms=_now_ms(),
                    session_run=cmd.session_run,
                )
            )

    # ------------------------------------------------------------------
    # Report hand-off
    # ------------------------------------------------------------------

    async def _run_handoff(self, cmd: SubmitReport) -> None:
        handoff = self._ctx.handoff
        if handoff is None:
            raise RuntimeError("Hand-off must be attached before SubmitReport")

        outcome = await handoff.submit(
            session_run=cmd.session_run,
            aggregate=cmd.aggregate,
            context=cmd.context,
        )
        if outcome is None:
            return

        if outcome.report is not None:
            event: Event = HandoffSucceeded(
                event_type=EventType.HANDOFF_SUCCEEDED,
                ts_ms=_now_ms(),
                session_run=outcome.session_run,
                report=outcome.report,
            )
        else:
            assert outcome.error is not None
            event = HandoffFailed(
                event_type=EventType.HANDOFF_FAILED,
                ts_ms=_now_ms(),
                session_run=outcome.session_run,
                error=outcome.error,
            )

        await self.handle_event(event)

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        self._cancel_timer(timer_id)
        session_run = self._state.session_run

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
            except asyncio.CancelledError:
                return

            # The poll handler re-arms this same timer_id; drop our own
            # entry first so the replacement is not cancelled.
            if self._timers.get(timer_id) is asyncio.current_task():
                del self._timers[timer_id]

            event = self._construct_timeout_event(
                timer_id=timer_id,
                timeout_event_type=timeout_event_type,
                session_run=session_run,
            )
            await self.handle_event(event)

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _construct_timeout_event(
        self,
        *,
        timer_id: str,
        timeout_event_type: EventType,
        session_run: int,
    ) -> Event:
        """
        Construct the timeout event for an expired timer.

        The reducer emits timer commands with just EventType; runtime
        stamps the session_run that was current when the timer started.
        """
        ts = _now_ms()
        run = session_run

        if timeout_event_type is EventType.POLL_TICK:
            return PollTick(event_type=EventType.POLL_TICK, ts_ms=ts, session_run=run)

        if timeout_event_type is EventType.WATCHDOG_TIMEOUT:
            return WatchdogTimeout(
                event_type=EventType.WATCHDOG_TIMEOUT, ts_ms=ts, session_run=run
            )

        raise ValueError(
            f"Unknown timeout event type: {timeout_event_type} "
            f"for timer_id: {timer_id}"
        )

"""
Monitoring gateway.

Responsibilities:
- Owns MonitorSession lifecycle
- Tracks connection_status independently of session state
- Routes inbound JSON control messages -> session events
- Owns the serial transport, the read loop and the frame extractor
- Decodes frames and passes immutable samples to the runtime through a
  queue (the read loop never touches session state)
- Logs and counts decode failures without interrupting the stream
- Converts a non-intentional read failure into TransportLost

NOT responsible for:
- Any state machine logic
- Executing reducer commands (runtime does)
- Report generation
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, TYPE_CHECKING
from uuid import uuid4

import serial

from adapters.report.models import ReportContext
from constants import SAMPLE_QUEUE_MAX
from handoff.report_handoff import ReportHandoff
from observability.logger import log_event
from orchestrator.enums.state import State
from orchestrator.events import (
    Event,
    EventType,
    SampleDecoded,
    SessionEnded,
    SessionStarted,
    StartRequested,
    StopRequested,
    TransportClosed,
    TransportLost,
)
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import SessionState
from protocol.framing import FrameExtractor
from protocol.vitals import DecodeFailure, VitalSample, decode
from session.connection_status import ConnectionStatus
from session.monitor_session import MonitorSession
from transport.errors import ReadError, TransportConnectionError
from transport.serial_link import SerialTransport

if TYPE_CHECKING:
    from adapters.report.base import ReportGenerator
    from config import AppConfig

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound_json:
        JSON messages to send to client
    """
    outbound_json: tuple[dict[str, Any], ...] = ()


# ------------------------------------------------------------------
# MonitoringGateway
# ------------------------------------------------------------------

class MonitoringGateway:
    """
    One gateway == one client connection == at most one open serial port.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        report_generator: ReportGenerator | None = None,
        serial_factory: Callable[..., Any] = serial.Serial,
    ) -> None:
        self._config = config
        self._report_generator = report_generator
        self._serial_factory = serial_factory

        self.session: MonitorSession | None = None

        self._extractor = FrameExtractor()
        self._samples: asyncio.Queue[VitalSample] = asyncio.Queue(maxsize=SAMPLE_QUEUE_MAX)
        self._read_task: asyncio.Task[None] | None = None
        self._dispatch_task: asyncio.Task[None] | None = None

        self.decode_failures = 0
        self.samples_dropped = 0

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def on_ws_connect(self) -> GatewayResult:
        """Called when a client connection is established."""
        session_id = _new_session_id()

        self.session = MonitorSession(session_id=session_id)

        runtime = Runtime(
            initial_state=SessionState(
                quota=self._config.session_quota,
                poll_interval_ms=self._config.poll_interval_ms,
                max_duration_ms=int(self._config.session_max_duration_s * 1000),
            ),
            context=RuntimeExecutionContext(session=self.session),
        )
        self.session.attach_runtime(runtime)
        self.session.attach_handoff(
            ReportHandoff(generator=self._report_generator, session_id=session_id)
        )

        await self._dispatch(
            SessionStarted(
                event_type=EventType.SESSION_STARTED,
                ts_ms=_now_ms(),
                session_id=session_id,
            )
        )

        init_msg: dict[str, Any] = {
            "type": "SESSION_INIT",
            "session_id": session_id,
            "config": {
                "quota": self._config.session_quota,
                "poll_interval_ms": self._config.poll_interval_ms,
                "max_duration_s": self._config.session_max_duration_s,
                "default_port": self._config.serial_port,
                "baud_rate": self._config.serial_baud_rate,
                "report_enabled": self._report_generator is not None,
            },
        }

        return GatewayResult(outbound_json=(init_msg,) + self._drain_control_out())

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """Called when the client goes away. Releases the port."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return GatewayResult()

        await self._close_port(reason=reason or "client_disconnect")

        runtime = self.session.runtime
        if runtime is not None:
            await runtime.shutdown()

        await self._dispatch(
            SessionEnded(
                event_type=EventType.SESSION_ENDED,
                ts_ms=_now_ms(),
                session_id=self.session.session_id,
            )
        )

        return GatewayResult(outbound_json=self._drain_control_out())

    # ------------------------------------------------------------------
    # Inbound control
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route inbound JSON to session events."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "session_id": self.session.session_id,
                "error": str(e),
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        if not isinstance(data, dict):
            data = {}

        msg_type = data.get("type")
        ts_ms = data.get("ts_ms", _now_ms())

        if msg_type == "OPEN":
            await self._open_port(data)
        elif msg_type == "START":
            await self._start(data, ts_ms)
        elif msg_type == "STOP":
            await self._dispatch(StopRequested(event_type=EventType.STOP_REQUESTED, ts_ms=ts_ms))
        elif msg_type == "CLOSE":
            await self._close_port(reason="client_close")
        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "msg_type": msg_type,
                "session_id": self.session.session_id,
            })
            return GatewayResult()

        return GatewayResult(outbound_json=self._drain_control_out())

    async def _start(self, data: dict[str, Any], ts_ms: int) -> None:
        assert self.session is not None

        transport = self.session.transport
        if transport is None or not transport.is_open:
            self._send_error("Serial port is not open")
            return

        context: ReportContext | None = None
        raw_context = data.get("context")
        if raw_context is not None:
            try:
                if not isinstance(raw_context, dict):
                    raise ValueError("context must be an object")
                context = ReportContext.from_dict(raw_context)
            except ValueError as e:
                self._send_error(f"Invalid report context: {e}")
                return

        await self._dispatch(
            StartRequested(
                event_type=EventType.START_REQUESTED,
                ts_ms=ts_ms,
                context=context,
            )
        )

    # ------------------------------------------------------------------
    # Serial port lifecycle
    # ------------------------------------------------------------------

    async def _open_port(self, data: dict[str, Any]) -> None:
        assert self.session is not None

        current = self.session.transport
        if current is not None and current.is_open:
            self._send_error(f"Serial port {current.port} is already open")
            return

        port = data.get("port") or self._config.serial_port
        if not port:
            self._send_error("No serial port selected")
            return

        baud_rate = data.get("baud_rate", self._config.serial_baud_rate)
        if isinstance(baud_rate, bool) or not isinstance(baud_rate, int) or baud_rate < 1:
            self._send_error(f"Invalid baud rate: {baud_rate!r}")
            return

        transport = SerialTransport(
            port=port,
            baud_rate=baud_rate,
            serial_factory=self._serial_factory,
        )
        self.session.attach_transport(transport)
        self.session.connection_status = ConnectionStatus.CONNECTING
        self.session.enqueue_control(self.session.status_message())

        try:
            await transport.open()
        except TransportConnectionError as e:
            self.session.connection_status = ConnectionStatus.ERROR
            self.session.attach_transport(None)
            self._send_error(str(e))
            self.session.enqueue_control(self.session.status_message())
            return

        self.session.connection_status = ConnectionStatus.UP

        # A previous port may have died under us and left its dispatcher
        await self._stop_io()
        self._extractor.reset()
        self._read_task = asyncio.create_task(self._read_loop(transport))
        self._dispatch_task = asyncio.create_task(self._dispatch_samples())
        self.session.enqueue_control(self.session.status_message())

    async def _close_port(self, *, reason: str) -> None:
        """
        Release the port from any state. Idempotent.

        Order: stop the read loop, let the reducer abort an active
        session, then close the transport.
        """
        assert self.session is not None

        transport = self.session.transport
        if transport is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CLOSE_WITHOUT_TRANSPORT",
                "session_id": self.session.session_id,
                "reason": reason,
            })
            return

        await self._stop_io()

        await self._dispatch(
            TransportClosed(event_type=EventType.TRANSPORT_CLOSED, ts_ms=_now_ms())
        )
        await transport.close()

        self.session.attach_transport(None)
        self.session.connection_status = ConnectionStatus.DOWN
        self.session.enqueue_control(self.session.status_message())

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "PORT_RELEASED",
            "reason": reason,
            "decode_failures": self.decode_failures,
            "samples_dropped": self.samples_dropped,
            "framing": {
                "frames_emitted": self._extractor.stats.frames_emitted,
                "noise_chars_dropped": self._extractor.stats.noise_chars_dropped,
            },
            **self.session.log_context(),
        })

    async def _stop_io(self) -> None:
        tasks = [t for t in (self._read_task, self._dispatch_task) if t is not None]
        current = asyncio.current_task()
        for task in tasks:
            if task is not current:
                task.cancel()
        await asyncio.gather(*(t for t in tasks if t is not current), return_exceptions=True)
        self._read_task = None
        self._dispatch_task = None

        # Samples decoded before the close are dropped with the session
        while not self._samples.empty():
            self._samples.get_nowait()
            self._samples.task_done()

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def _read_loop(self, transport: SerialTransport) -> None:
        """
        Pull chunks until the transport closes or fails.

        A ReadError from an intentional close ends the loop silently; any
        other ReadError is a disconnect and becomes TransportLost. A failure
        while processing a chunk is reported the same way.
        """
        assert self.session is not None

        while True:
            try:
                chunk = await transport.read()
            except ReadError as e:
                if e.intentional:
                    log_event({
                        "ts_ms": _now_ms(),
                        "event_type": "READ_LOOP_STOPPED",
                        **self.session.log_context(),
                    })
                    return

                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "READ_ERROR",
                    "error": str(e),
                    **self.session.log_context(),
                })
                await self._report_lost(str(e))
                return

            try:
                for sample in self.handle_chunk(chunk):
                    self._enqueue_sample(sample)
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "READ_LOOP_FAILED",
                    "error": f"{type(e).__name__}: {e}",
                    **self.session.log_context(),
                })
                await self._report_lost(f"read loop failed: {type(e).__name__}")
                return

    async def _report_lost(self, reason: str) -> None:
        assert self.session is not None
        self.session.connection_status = ConnectionStatus.ERROR
        self._read_task = None
        await self._dispatch(
            TransportLost(
                event_type=EventType.TRANSPORT_LOST,
                ts_ms=_now_ms(),
                reason=reason,
            )
        )
        self.session.enqueue_control(self.session.status_message())

    def handle_chunk(self, chunk: bytes) -> list[VitalSample]:
        """
        Frame and decode one raw chunk.

        Decode failures are logged and counted, never raised.
        """
        samples: list[VitalSample] = []
        for frame in self._extractor.feed(chunk):
            result = decode(frame)
            if isinstance(result, DecodeFailure):
                self.decode_failures += 1
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "FRAME_DECODE_ERROR",
                    "session_id": self.session.session_id if self.session else None,
                    **result.log_fields(),
                })
                continue
            samples.append(result)
        return samples

    def _enqueue_sample(self, sample: VitalSample) -> None:
        try:
            self._samples.put_nowait(sample)
        except asyncio.QueueFull:
            self.samples_dropped += 1
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "SAMPLE_DROPPED",
                "frame_index": sample.frame_index,
                "queue_max": SAMPLE_QUEUE_MAX,
            })

    async def _dispatch_samples(self) -> None:
        """Forward decoded samples to the runtime in arrival order."""
        while True:
            sample = await self._samples.get()
            try:
                await self._dispatch(
                    SampleDecoded(
                        event_type=EventType.SAMPLE_DECODED,
                        ts_ms=_now_ms(),
                        sample=sample,
                    )
                )
            finally:
                self._samples.task_done()

    async def wait_samples_dispatched(self) -> None:
        """Block until every queued sample has gone through the runtime."""
        await self._samples.join()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> State | None:
        """Mirror of the runtime's control state (observability only)."""
        if self.session is None or self.session.runtime is None:
            return None
        return self.session.runtime.state.state

    # ------------------------------------------------------------------
    # Reducer dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, event: Event) -> None:
        """Forward event into runtime."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "DISPATCH_WITHOUT_SESSION",
                "dropped_event": event.event_type.value,
            })
            return

        runtime = self.session.runtime
        assert runtime is not None, "Runtime must exist before dispatch"

        await runtime.handle_event(event)

    def _send_error(self, message: str) -> None:
        assert self.session is not None
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CLIENT_ERROR_SENT",
            "message": message,
            **self.session.log_context(),
        })
        self.session.enqueue_control({
            "type": "ERROR",
            "ts_ms": _now_ms(),
            "message": message,
        })

    def _drain_control_out(self) -> tuple[dict[str, Any], ...]:
        if self.session is None:
            return ()
        return self.session.drain_control()

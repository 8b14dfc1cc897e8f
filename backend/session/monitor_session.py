"""
Monitoring session container.

- Owns connection status (mutable, gateway-controlled)
- Holds the runtime, transport and hand-off for one client connection
- Buffers outbound client messages
- Owned and mutated by MonitoringGateway
- NOT a state machine
- Contains no orchestration logic
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from handoff.report_handoff import ReportHandoff
from orchestrator.runtime import Runtime
from session.connection_status import ConnectionStatus
from transport.serial_link import SerialTransport


@dataclass
class MonitorSession:
    """Mutable runtime container for a single client connection."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Connection / gateway-controlled state
    # ------------------------------------------------------------------

    connection_status: ConnectionStatus = ConnectionStatus.DOWN

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    runtime: Runtime | None = None
    transport: SerialTransport | None = None
    handoff: ReportHandoff | None = None

    def __post_init__(self) -> None:
        self._control_out: deque[dict[str, Any]] = deque()
        self._control_ready = asyncio.Event()

    # ------------------------------------------------------------------
    # Wiring helpers (called by MonitoringGateway)
    # ------------------------------------------------------------------

    def attach_runtime(self, runtime: Runtime) -> None:
        self.runtime = runtime

    def attach_transport(self, transport: SerialTransport | None) -> None:
        """Attach (or detach, with None) the serial transport."""
        self.transport = transport

    def attach_handoff(self, handoff: ReportHandoff) -> None:
        self.handoff = handoff

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """
        Return standard logging context for this session.

        Intended for gateway / observability enrichment.
        """
        return {
            "session_id": self.session_id,
            "connection_status": self.connection_status.value,
        }

    def status_message(self) -> dict[str, Any]:
        """Snapshot of link + session state for the client."""
        msg: dict[str, Any] = {
            "type": "STATUS",
            "ts_ms": time.time_ns() // 1_000_000,
            "connection_status": self.connection_status.value,
            "port": self.transport.port if self.transport is not None else None,
        }
        if self.runtime is not None:
            state = self.runtime.state
            msg.update({
                "state": state.state.value,
                "session_run": state.session_run,
                "valid_readings": state.valid_readings,
                "quota": state.quota,
                "last_error": state.last_error,
            })
        return msg

    # ------------------------------------------------------------------
    # Client egress
    # ------------------------------------------------------------------

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        """
        Enqueue a control message for delivery to the client.

        Messages are buffered in FIFO order and later retrieved via
        drain_control().
        """
        self._control_out.append(msg)
        self._control_ready.set()

    def drain_control(self) -> tuple[dict[str, Any], ...]:
        """
        Atomically drain all pending control messages.

        Returns:
            A FIFO-ordered tuple of control messages. Returns an empty
            tuple if no messages are pending.

        After this call, the control queue is empty.
        """
        self._control_ready.clear()
        if not self._control_out:
            return ()
        out = tuple(self._control_out)
        self._control_out.clear()
        return out

    async def wait_control(self) -> tuple[dict[str, Any], ...]:
        """Block until at least one control message is pending, then drain."""
        await self._control_ready.wait()
        return self.drain_control()

"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution and side effects (transport, hand-off,
client queue, status).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from adapters.report.models import ReportContext
    from handoff.aggregate import VitalsAggregate
    from handoff.report_handoff import HandoffOutcome
    from session.monitor_session import MonitorSession


# ---------------------------------------------------------------------
# Capability Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class TransportProtocol(Protocol):
    async def write(self, data: bytes) -> None: ...
    async def close(self) -> None: ...


@runtime_checkable
class HandoffProtocol(Protocol):
    async def submit(
        self,
        *,
        session_run: int,
        aggregate: VitalsAggregate,
        context: ReportContext | None = None,
    ) -> HandoffOutcome | None: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    This object provides *live views* into session-owned resources
    so Runtime does not need to synchronize or cache anything.

    Runtime is allowed to:
    - Write to and close the transport
    - Submit the hand-off
    - Enqueue client messages

    Runtime is NOT allowed to:
    - Mutate session state directly
    - Perform orchestration decisions
    """

    def __init__(self, session: MonitorSession) -> None:
        self.session = session

    # ----------------------------
    # Session metadata
    # ----------------------------

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.session.connection_status

    # ----------------------------
    # Collaborators
    # ----------------------------

    @property
    def transport(self) -> TransportProtocol | None:
        return self.session.transport

    @property
    def handoff(self) -> HandoffProtocol | None:
        return self.session.handoff

    # ----------------------------
    # Client egress
    # ----------------------------

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        self.session.enqueue_control(msg)

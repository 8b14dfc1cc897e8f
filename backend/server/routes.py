"""
Route registration for the vitals monitor API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire gateway to WebSocket lifecycle
- Pump server-initiated messages (samples, reports) to the client
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from observability.logger import log_event
from session.gateway import GatewayResult, MonitoringGateway
from session.monitor_session import MonitorSession
from transport.ports import list_ports


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/ports")
    async def ports() -> Any: # pyright: ignore[reportUnusedFunction]
        try:
            found = await asyncio.to_thread(list_ports)
        except OSError as exc:
            log_event({
                "event_type": "PORT_LIST_FAILED",
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return JSONResponse(status_code=500, content={"error": str(exc)})
        return {"ports": [p.to_dict() for p in found]}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        gateway = MonitoringGateway(
            config=app.state.config,
            report_generator=app.state.report_generator,
            serial_factory=app.state.serial_factory,
        )
        pump: asyncio.Task[None] | None = None

        try:
            result = await gateway.on_ws_connect()
            await _flush_gateway_result(ws, result)

            assert gateway.session is not None
            pump = asyncio.create_task(_pump_control(ws, gateway.session))

            while True:
                text = await ws.receive_text()
                result = await gateway.on_json_message(text)
                await _flush_gateway_result(ws, result)

        except WebSocketDisconnect:
            await _stop_pump(pump)
            await gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "session_id": gateway.session.session_id if gateway.session else None,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await _stop_pump(pump)
            await gateway.on_ws_disconnect(reason="server_error")


async def _pump_control(ws: WebSocket, session: MonitorSession) -> None:
    """Deliver messages produced outside a request (read loop, timers, hand-off)."""
    while True:
        for msg in await session.wait_control():
            await ws.send_text(json.dumps(msg))


async def _stop_pump(pump: asyncio.Task[None] | None) -> None:
    if pump is None:
        return
    pump.cancel()
    await asyncio.gather(pump, return_exceptions=True)


async def _flush_gateway_result(
    ws: WebSocket,
    result: GatewayResult,
) -> None:
    for msg in result.outbound_json:
        await ws.send_text(json.dumps(msg))

"""
Serial transport lifecycle.

Responsibilities:
- Open / close the duplex serial channel
- Own the reader and writer ends (exclusively)
- Serialize reads and writes with per-direction locks
- Map pyserial failures into the transport error taxonomy

Non-responsibilities:
- No framing or decoding (see protocol/)
- No session decisions (see orchestrator/)

pyserial is blocking; every call into the port runs on a worker thread via
asyncio.to_thread so the event loop never stalls on the device. A blocking
read returns after SERIAL_READ_TIMEOUT_S at the latest, which bounds how
long a cancelled read lingers after close().
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

import serial

from constants import (
    SERIAL_READ_MAX_BYTES,
    SERIAL_READ_TIMEOUT_S,
    SERIAL_WRITE_TIMEOUT_S,
)
from observability.logger import log_event
from transport.errors import ReadError, TransportConnectionError, WriteError


SerialFactory = Callable[..., Any]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class TransportState(str, Enum):
    """Lifecycle of the channel."""
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    CLOSING = "CLOSING"


@dataclass(frozen=True)
class TransportHandle:
    """
    Proof of an open channel, returned by open().

    The reader/writer pair itself never leaves SerialTransport; holders of
    a handle go through read()/write().
    """
    port: str
    baud_rate: int
    opened_at_ms: int


class SerialTransport:
    """
    One transport == one serial port.

    Invariants:
    - Reader and writer are acquired together in open() and released
      together in close().
    - No read or write reaches the port after close() begins.
    - close() is idempotent and safe from any state.
    """

    def __init__(
        self,
        *,
        port: str,
        baud_rate: int,
        serial_factory: SerialFactory = serial.Serial,
        read_timeout_s: float = SERIAL_READ_TIMEOUT_S,
        write_timeout_s: float = SERIAL_WRITE_TIMEOUT_S,
    ) -> None:
        self._port = port
        self._baud_rate = baud_rate
        self._serial_factory = serial_factory
        self._read_timeout_s = read_timeout_s
        self._write_timeout_s = write_timeout_s

        self._serial: Any = None
        self._handle: TransportHandle | None = None
        self._state = TransportState.CLOSED

        self._read_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def handle(self) -> TransportHandle | None:
        return self._handle

    @property
    def is_open(self) -> bool:
        return self._state is TransportState.OPEN

    @property
    def port(self) -> str:
        return self._port

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> TransportHandle:
        """
        Open the port and take ownership of its reader/writer.

        Returns the existing handle if already open.

        Raises:
            TransportConnectionError if the device is absent or refuses.
        """
        if self._state is TransportState.OPEN and self._handle is not None:
            return self._handle

        try:
            ser = await asyncio.to_thread(
                self._serial_factory,
                port=self._port,
                baudrate=self._baud_rate,
                timeout=self._read_timeout_s,
                write_timeout=self._write_timeout_s,
            )
        except (serial.SerialException, OSError, ValueError) as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "TRANSPORT_OPEN_FAILED",
                "port": self._port,
                "error": str(e),
            })
            raise TransportConnectionError(
                f"Could not open serial port {self._port}: {e}"
            ) from e

        self._serial = ser
        self._handle = TransportHandle(
            port=self._port,
            baud_rate=self._baud_rate,
            opened_at_ms=_now_ms(),
        )
        self._state = TransportState.OPEN

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "TRANSPORT_OPENED",
            "port": self._port,
            "baud_rate": self._baud_rate,
        })
        return self._handle

    async def close(self) -> None:
        """
        Cancel any in-flight read, release reader/writer, close the port.

        Idempotent. Errors from a peer that already went away are logged,
        not raised.
        """
        if self._state is not TransportState.OPEN:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "TRANSPORT_CLOSE_NOOP",
                "port": self._port,
                "state": self._state.value,
            })
            return

        self._state = TransportState.CLOSING
        ser = self._serial

        # Unblock a reader parked in ser.read(); not every platform has it
        cancel_read = getattr(ser, "cancel_read", None)
        if cancel_read is not None:
            try:
                cancel_read()
            except (serial.SerialException, OSError) as e:
                self._log_close_error("cancel_read", e)

        async with self._write_lock:
            try:
                await asyncio.to_thread(ser.close)
            except (serial.SerialException, OSError) as e:
                self._log_close_error("close", e)

        self._serial = None
        self._handle = None
        self._state = TransportState.CLOSED

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "TRANSPORT_CLOSED",
            "port": self._port,
        })

    async def __aenter__(self) -> SerialTransport:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    async def read(self) -> bytes:
        """
        Read whatever bytes are available (at least one, or b"" on timeout).

        Raises:
            ReadError(intentional=True) when the transport was closed by us
            ReadError(intentional=False) when the device failed mid-read
        """
        if self._state is not TransportState.OPEN:
            raise ReadError("transport is not open", intentional=True)

        ser = self._serial
        async with self._read_lock:
            try:
                return await asyncio.to_thread(self._read_available, ser)
            except (serial.SerialException, OSError) as e:
                raise ReadError(
                    f"serial read failed: {e}",
                    intentional=self._state is not TransportState.OPEN,
                ) from e

    async def write(self, data: bytes) -> None:
        """
        Transmit bytes (the control protocol sends single-byte commands).

        Raises:
            WriteError if the writer is not held or the write fails.
        """
        if self._state is not TransportState.OPEN:
            raise WriteError("transport is not open")

        ser = self._serial
        async with self._write_lock:
            try:
                await asyncio.to_thread(self._write_all, ser, data)
            except (serial.SerialException, OSError) as e:
                raise WriteError(f"serial write failed: {e}") from e

    # ------------------------------------------------------------------
    # Blocking helpers (worker thread)
    # ------------------------------------------------------------------

    @staticmethod
    def _read_available(ser: Any) -> bytes:
        waiting = ser.in_waiting
        size = min(max(1, waiting), SERIAL_READ_MAX_BYTES)
        return bytes(ser.read(size))

    @staticmethod
    def _write_all(ser: Any, data: bytes) -> None:
        ser.write(data)
        ser.flush()

    def _log_close_error(self, step: str, error: Exception) -> None:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "TRANSPORT_CLOSE_ERROR",
            "port": self._port,
            "step": step,
            "error": str(error),
        })

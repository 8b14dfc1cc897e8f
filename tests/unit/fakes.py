# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from typing import Any, Callable

import serial

from adapters.report.base import ReportGenerator
from adapters.report.errors import ReportError
from adapters.report.models import HealthReport, ReportContext
from handoff.aggregate import VitalsAggregate
from protocol.vitals import Batch, Scalar, VitalSample
from transport.errors import WriteError


REPORT_JSON: dict[str, Any] = {
    "wellnessScore": 72,
    "summary": "Readings suggest a calm, well-rested state.",
    "recommendations": [
        {"title": "Keep moving", "description": "Take a short walk.", "priority": "LOW"},
        {"title": "Hydrate", "description": "Drink water regularly.", "priority": "MEDIUM"},
    ],
    "vitals": {
        "heartRate": {"value": "74 BPM", "status": "Normal", "interpretation": "Resting range."},
        "spo2": {"value": "97%", "status": "Normal", "interpretation": "Good oxygenation."},
        "ecg": {"value": "1.1 mV", "status": "Normal", "interpretation": "Regular activity."},
        "stress": {"value": "2.1 uS", "status": "Low", "interpretation": "Little arousal."},
    },
}


def scalar_sample(hr: float = 74, spo2: float = 97, ecg: float = 1.1, gsr: float = 2.1) -> VitalSample:
    return VitalSample(
        heart_rate=Scalar(hr), spo2=Scalar(spo2), ecg=Scalar(ecg), gsr=Scalar(gsr)
    )


def batch_sample(
    hr: tuple[float, ...], spo2: tuple[float, ...], ecg: tuple[float, ...], gsr: tuple[float, ...]
) -> VitalSample:
    return VitalSample(
        heart_rate=Batch(hr), spo2=Batch(spo2), ecg=Batch(ecg), gsr=Batch(gsr)
    )


async def wait_until(predicate: Callable[[], bool], timeout_s: float = 2.0) -> None:
    deadline = time.monotonic() + timeout_s
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


# ------------------------------------------------------------------
# Report generator fake
# ------------------------------------------------------------------

class FakeReportGenerator(ReportGenerator):
    def __init__(self, *, error: ReportError | None = None, gate: asyncio.Event | None = None) -> None:
        self.calls: list[tuple[VitalsAggregate, ReportContext | None]] = []
        self._error = error
        self._gate = gate

    async def generate(
        self,
        aggregate: VitalsAggregate,
        context: ReportContext | None = None,
    ) -> HealthReport:
        self.calls.append((aggregate, context))
        if self._gate is not None:
            await self._gate.wait()
        if self._error is not None:
            raise self._error
        return HealthReport.from_dict(REPORT_JSON)


# ------------------------------------------------------------------
# Transport fakes
# ------------------------------------------------------------------

class FakeTransport:
    """Async transport double for runtime tests."""

    def __init__(self, *, fail_writes: bool = False, port: str = "/dev/fake") -> None:
        self.port = port
        self.writes: list[bytes] = []
        self.close_calls = 0
        self.fail_writes = fail_writes

    async def write(self, data: bytes) -> None:
        if self.fail_writes:
            raise WriteError("device unplugged")
        self.writes.append(data)

    async def close(self) -> None:
        self.close_calls += 1


class FakeSerial:
    """
    In-memory stand-in for serial.Serial.

    Called from worker threads by SerialTransport; data pushed from the
    test thread is handed out by read().
    """

    def __init__(self, port: str, baudrate: int = 9600, timeout: float | None = None,
                 write_timeout: float | None = None) -> None:
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.write_timeout = write_timeout
        self.written: list[bytes] = []
        self.is_open = True
        self.fail_reads = False
        self.close_calls = 0
        self._chunks: deque[bytes] = deque()
        self._lock = threading.Lock()

    def push(self, data: bytes) -> None:
        with self._lock:
            self._chunks.append(data)

    @property
    def in_waiting(self) -> int:
        with self._lock:
            return len(self._chunks[0]) if self._chunks else 0

    def read(self, size: int = 1) -> bytes:
        if not self.is_open:
            raise serial.SerialException("port closed")
        if self.fail_reads:
            raise serial.SerialException("device reports readiness to read but returned no data")
        with self._lock:
            if self._chunks:
                chunk = self._chunks.popleft()
                if len(chunk) > size:
                    self._chunks.appendleft(chunk[size:])
                    chunk = chunk[:size]
                return chunk
        time.sleep(0.005)
        return b""

    def write(self, data: bytes) -> int:
        if not self.is_open:
            raise serial.SerialException("port closed")
        self.written.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        return None

    def cancel_read(self) -> None:
        return None

    def close(self) -> None:
        self.close_calls += 1
        self.is_open = False


class FakeSerialFactory:
    def __init__(self, *, fail_open: bool = False) -> None:
        self.instances: list[FakeSerial] = []
        self.fail_open = fail_open

    def __call__(self, **kwargs: Any) -> FakeSerial:
        if self.fail_open:
            raise serial.SerialException(f"could not open port {kwargs.get('port')}")
        ser = FakeSerial(**kwargs)
        self.instances.append(ser)
        return ser

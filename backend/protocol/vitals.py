"""
Vital-sign sample decoding.

A frame body is a JSON object with four required keys:

    heartRate, spo2, ecg, gsr

Each value is either a bare number (single reading) or a non-empty array of
numbers (device-side batch). Both forms are normalized into a tagged union:

    Scalar(value) | Batch(values)

so callers read `.first` / `.values` uniformly instead of branching on shape.

Decoding never raises to the caller: malformed frames come back as a
DecodeFailure value that carries the raw frame for diagnostics.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Union

from constants import FRAME_PREVIEW_CHARS, VITAL_FIELDS
from protocol.framing import Frame


# -------------------------
# Exceptions
# -------------------------

class FrameDecodeError(ValueError):
    """
    Raised internally when a frame body violates the sample contract.

    Never escapes decode(); it is converted into a DecodeFailure.
    """

    def __init__(self, reason: str, detail: str = "") -> None:
        super().__init__(f"{reason}: {detail}" if detail else reason)
        self.reason = reason
        self.detail = detail


# -------------------------
# Value shapes
# -------------------------

@dataclass(frozen=True)
class Scalar:
    """Single reading."""
    value: float

    @property
    def first(self) -> float:
        return self.value

    @property
    def values(self) -> tuple[float, ...]:
        return (self.value,)

    def to_wire(self) -> float:
        return self.value


@dataclass(frozen=True)
class Batch:
    """Device-side batch of readings (non-empty)."""
    values: tuple[float, ...]

    @property
    def first(self) -> float:
        return self.values[0]

    def to_wire(self) -> list[float]:
        return list(self.values)


VitalValue = Union[Scalar, Batch]


# -------------------------
# Decoded results
# -------------------------

@dataclass(frozen=True)
class VitalSample:
    """
    One decoded reading (or batch of readings) from the device.

    Validity (quota contribution):
        every field's first value is strictly greater than zero.
        A zero or negative value is the device's "not worn / disconnected"
        signal; such samples decode fine but do not count toward quota.
    """
    heart_rate: VitalValue
    spo2: VitalValue
    ecg: VitalValue
    gsr: VitalValue
    frame_index: int = -1

    def fields(self) -> dict[str, VitalValue]:
        """Wire-keyed view of the four values."""
        return {
            "heartRate": self.heart_rate,
            "spo2": self.spo2,
            "ecg": self.ecg,
            "gsr": self.gsr,
        }

    @property
    def is_valid(self) -> bool:
        return all(v.first > 0 for v in self.fields().values())

    @property
    def is_batch(self) -> bool:
        return isinstance(self.heart_rate, Batch)

    @property
    def batch_size(self) -> int:
        return len(self.heart_rate.values)

    def to_wire(self) -> dict[str, Any]:
        """Serialize back to the device's JSON shape."""
        return {key: value.to_wire() for key, value in self.fields().items()}


@dataclass(frozen=True)
class DecodeFailure:
    """
    A frame that could not be decoded into a VitalSample.

    Not fatal: callers log it and continue with the next frame.
    """
    frame: Frame
    reason: str
    detail: str = ""

    def log_fields(self) -> dict[str, Any]:
        return {
            "frame_index": self.frame.index,
            "reason": self.reason,
            "detail": self.detail,
            "frame_preview": self.frame.text[:FRAME_PREVIEW_CHARS],
        }


DecodeResult = Union[VitalSample, DecodeFailure]


# -------------------------
# Helpers
# -------------------------

def _number(key: str, raw: Any) -> float:
    # bool is an int subclass; true/false are not readings
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise FrameDecodeError("wrong_type", f"{key}={raw!r}")
    try:
        value = float(raw)
    except OverflowError as e:
        # repr of an int this large can itself exceed the digit limit
        raise FrameDecodeError("non_finite", f"{key} out of float range") from e
    if not math.isfinite(value):
        raise FrameDecodeError("non_finite", f"{key}={raw!r}")
    return value


def _vital_value(key: str, raw: Any) -> VitalValue:
    if isinstance(raw, list):
        if not raw:
            raise FrameDecodeError("empty_array", key)
        return Batch(values=tuple(_number(key, item) for item in raw))
    return Scalar(value=_number(key, raw))


def _check_shape(values: dict[str, VitalValue]) -> None:
    """
    All four fields must share one shape: all scalars, or all batches of
    the same length. A shorter array means a truncated batch.
    """
    kinds = {type(v) for v in values.values()}
    if len(kinds) > 1:
        raise FrameDecodeError("shape_mismatch", "mixed scalar and array fields")

    lengths = {len(v.values) for v in values.values()}
    if len(lengths) > 1:
        detail = ",".join(f"{k}={len(v.values)}" for k, v in values.items())
        raise FrameDecodeError("batch_length_mismatch", detail)


def _parse(frame: Frame) -> VitalSample:
    try:
        body = json.loads(frame.text)
    except (ValueError, RecursionError) as e:
        # ValueError covers JSONDecodeError and the int-string digit limit
        raise FrameDecodeError("invalid_json", str(e)) from e

    if not isinstance(body, dict):
        raise FrameDecodeError("not_an_object", type(body).__name__)

    missing = [key for key in VITAL_FIELDS if key not in body]
    if missing:
        raise FrameDecodeError("missing_fields", ",".join(missing))

    values = {key: _vital_value(key, body[key]) for key in VITAL_FIELDS}
    _check_shape(values)

    return VitalSample(
        heart_rate=values["heartRate"],
        spo2=values["spo2"],
        ecg=values["ecg"],
        gsr=values["gsr"],
        frame_index=frame.index,
    )


# -------------------------
# Public API
# -------------------------

def decode(frame: Frame) -> DecodeResult:
    """
    Decode one frame into a VitalSample.

    Pure function; never raises.
    """
    try:
        return _parse(frame)
    except FrameDecodeError as e:
        return DecodeFailure(frame=frame, reason=e.reason, detail=e.detail)

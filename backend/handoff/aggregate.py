"""
Final aggregate of a monitoring session.

Selection rule:
- If the most recent valid sample is a device batch (more than one reading
  per field), the aggregate is that batch.
- Otherwise the aggregate is the streamed accumulation: the first value of
  every valid sample in the session window, in arrival order.

Readings that are not strictly positive are the device's "not worn"
signal and never enter the aggregate.

Pure functions only; safe to call from the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from statistics import fmean
from typing import Any, Literal, Sequence

from protocol.vitals import VitalSample

AggregateSource = Literal["batch", "stream", "empty"]


@dataclass(frozen=True)
class VitalsAggregate:
    """Per-vital reading series handed to the report collaborator."""
    heart_rate: tuple[float, ...] = ()
    spo2: tuple[float, ...] = ()
    ecg: tuple[float, ...] = ()
    gsr: tuple[float, ...] = ()
    source: AggregateSource = "empty"

    @property
    def reading_count(self) -> int:
        return len(self.heart_rate)

    @property
    def is_empty(self) -> bool:
        return self.reading_count == 0

    def means(self) -> dict[str, float]:
        """Wire-keyed averages. Raises ValueError when empty."""
        if self.is_empty:
            raise ValueError("aggregate is empty")
        return {
            "heartRate": fmean(self.heart_rate),
            "spo2": fmean(self.spo2),
            "ecg": fmean(self.ecg),
            "gsr": fmean(self.gsr),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "readings": self.reading_count,
            "heartRate": list(self.heart_rate),
            "spo2": list(self.spo2),
            "ecg": list(self.ecg),
            "gsr": list(self.gsr),
        }


def _from_batch(sample: VitalSample) -> VitalsAggregate:
    columns = (
        sample.heart_rate.values,
        sample.spo2.values,
        sample.ecg.values,
        sample.gsr.values,
    )
    # Keep a reading only if all four of its fields are positive
    rows = [row for row in zip(*columns) if all(v > 0 for v in row)]
    if not rows:
        return VitalsAggregate()
    hr, spo2, ecg, gsr = (tuple(col) for col in zip(*rows))
    return VitalsAggregate(heart_rate=hr, spo2=spo2, ecg=ecg, gsr=gsr, source="batch")


def build_aggregate(samples: Sequence[VitalSample]) -> VitalsAggregate:
    """Build the hand-off aggregate from the session's samples."""
    valid = [s for s in samples if s.is_valid]
    if not valid:
        return VitalsAggregate()

    latest = valid[-1]
    if latest.is_batch and latest.batch_size > 1:
        return _from_batch(latest)

    return VitalsAggregate(
        heart_rate=tuple(s.heart_rate.first for s in valid),
        spo2=tuple(s.spo2.first for s in valid),
        ecg=tuple(s.ecg.first for s in valid),
        gsr=tuple(s.gsr.first for s in valid),
        source="stream",
    )

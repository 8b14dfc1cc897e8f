"""
Timing metrics.

One measured block = one METRIC_TIMER event on the JSONL log.
Durations are monotonic; ts_ms is wall-clock for correlation with the
rest of the log.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[dict[str, Any]]:
    """
    Measure the enclosed block and emit exactly one METRIC_TIMER event.

    Yields a mutable details dict. "outcome" starts as "error" and the
    block sets it to "ok" once it completes normally; anything else the
    block adds is logged with the metric. Exceptions propagate unchanged.

    Usage:
        with timed("report_handoff_latency", session_id=session_id) as m:
            report = await generator.generate(aggregate)
            m["outcome"] = "ok"
    """
    fields: dict[str, Any] = {"outcome": "error", **(details or {})}
    start_ns = time.monotonic_ns()
    try:
        yield fields
    finally:
        log_event({
            "ts_ms": time.time_ns() // 1_000_000,
            "event_type": "METRIC_TIMER",
            "metric": name,
            "value_ms": (time.monotonic_ns() - start_ns) // 1_000_000,
            "session_id": session_id,
            "details": fields,
        })

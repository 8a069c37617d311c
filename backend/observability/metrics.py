"""
Timing for provider round trips.

One metric = one METRIC_TIMER log event. Nothing is aggregated in-process;
latency percentiles are computed downstream from the JSONL stream.

Durations use the monotonic clock; the event's ts_ms is wall clock.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from observability.logger import log_event


@dataclass
class TimerSample:
    """
    Handed to the body of `timed()`.

    The body may attach details (e.g. frame size) before the block exits.
    duration_ms is filled in on exit.
    """
    name: str
    details: dict[str, Any] = field(default_factory=dict)
    duration_ms: int | None = None


@contextmanager
def timed(
    name: str,
    *,
    request_id: str | None = None,
    state: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[TimerSample]:
    """
    Time the enclosed block and emit exactly one METRIC_TIMER event.

    The event is emitted on success and on exception; `outcome` is "ok" or
    the exception class name. Exceptions propagate unchanged.

        with timed("doubao_segment_response", request_id=client.request_id):
            raw = await ws.recv()
    """
    sample = TimerSample(name=name, details=dict(details or {}))
    outcome = "ok"
    start_ns = time.monotonic_ns()
    try:
        yield sample
    except BaseException as e:
        outcome = type(e).__name__
        raise
    finally:
        sample.duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
        log_event({
            "event_type": "METRIC_TIMER",
            "metric": name,
            "value_ms": sample.duration_ms,
            "outcome": outcome,
            "request_id": request_id,
            "state": state,
            "details": sample.details,
        })

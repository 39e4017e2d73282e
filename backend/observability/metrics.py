"""
Timing helpers for observability.

- Durations use monotonic time; event timestamps use wall-clock time
- One measurement = one METRIC_TIMER log event, never aggregated
- Prefer the `timed()` context manager so timers cannot leak
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event, now_ms


# timer_id -> (metric_name, start_time_ns)
_active_timers: dict[str, tuple[str, int]] = {}


def start_timer(name: str) -> str:
    """
    Start a monotonic timer and return its opaque id.

    Callers MUST call stop_timer() in a finally block unless they use
    `timed()`.
    """
    timer_id = f"timer_{uuid.uuid4().hex[:12]}"
    _active_timers[timer_id] = (name, time.monotonic_ns())
    return timer_id


def stop_timer(
    timer_id: str,
    *,
    details: dict[str, Any] | None = None,
) -> float | None:
    """
    Stop a timer and emit one METRIC_TIMER event.

    Returns:
        duration in milliseconds, or None for an unknown timer_id
    """
    entry = _active_timers.pop(timer_id, None)
    if entry is None:
        return None

    name, start_ns = entry
    duration_ms = (time.monotonic_ns() - start_ns) / 1_000_000

    log_event({
        "ts_ms": now_ms(),
        "event_type": "METRIC_TIMER",
        "metric": name,
        "value_ms": round(duration_ms, 3),
        "details": details or {},
    })

    return duration_ms


@contextmanager
def timed(
    name: str,
    *,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Measure the enclosed block.

    The metric is emitted exactly once, also when the block raises.

        with timed("persist_running_sum", details={"frame_number": 7}):
            writer.write(snapshot)
    """
    timer_id = start_timer(name)
    try:
        yield
    finally:
        stop_timer(timer_id, details=details)

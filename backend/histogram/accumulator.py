# backend/histogram/accumulator.py
"""
Running-sum histogram accumulation.

Concurrency contract:
- merge() is called from the single ingestion thread
- snapshot() may be called from any thread
- Both take one exclusive lock, held only for the in-memory mutate/read;
  callers persist snapshots AFTER the lock is released

Usage example:

    result = accumulator.merge(frame)
    if result.overflowed:
        log_event({"event_type": "BIN_OVERFLOW", "bins": list(result.overflowed_bins)})

    snapshot = accumulator.snapshot()
    writer.write(snapshot)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from histogram.frames import Frame
from histogram.models import FrameHistogram, HistogramSnapshot, RunningSum


# -------------------------
# Exceptions
# -------------------------

class HistogramError(Exception):
    """Base class for histogram accumulation errors."""


class GeometryMismatchError(HistogramError):
    """
    Raised when a frame's bin count differs from the established running sum.

    Geometry is fixed for the life of a run. This is fatal: the running
    sum is left untouched and the run must stop.
    """

    def __init__(self, *, expected: int, actual: int, frame_number: int) -> None:
        super().__init__(
            f"frame {frame_number} has {actual} bins, running sum has {expected}"
        )
        self.expected = expected
        self.actual = actual
        self.frame_number = frame_number


# -------------------------
# Merge result
# -------------------------

@dataclass(frozen=True)
class MergeResult:
    """
    Outcome of one merge.

    overflowed_bins:
        Bins clamped at UINT64_MAX during this merge. Empty if none.
    """
    frame_number: int
    overflowed_bins: tuple[int, ...] = ()
    created_running_sum: bool = False

    @property
    def overflowed(self) -> bool:
        return bool(self.overflowed_bins)


# -------------------------
# Accumulator
# -------------------------

class HistogramAccumulator:
    """
    Owns exactly one RunningSum per run.

    The running sum does not exist until the first frame is merged.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._running_sum: RunningSum | None = None
        self._frames_merged = 0

    def merge(self, frame: Frame) -> MergeResult:
        """
        Add a frame's counts into the running sum.

        Raises:
            GeometryMismatchError if frame.bin_count differs from the
            established running sum.
        """
        with self._lock:
            created = False
            if self._running_sum is None:
                self._running_sum = RunningSum.for_frame(frame)
                created = True
            elif frame.bin_count != self._running_sum.bin_count:
                raise GeometryMismatchError(
                    expected=self._running_sum.bin_count,
                    actual=frame.bin_count,
                    frame_number=frame.frame_number,
                )

            frame_histogram = FrameHistogram.from_frame(frame, self._running_sum.bin_edges)
            overflowed = self._running_sum.add(frame_histogram)
            self._frames_merged += 1

        return MergeResult(
            frame_number=frame.frame_number,
            overflowed_bins=overflowed,
            created_running_sum=created,
        )

    def snapshot(self) -> HistogramSnapshot | None:
        """
        Consistent read-only copy of the running sum, or None before the
        first frame.
        """
        with self._lock:
            if self._running_sum is None:
                return None
            return HistogramSnapshot.of(self._running_sum, frames_merged=self._frames_merged)

    @property
    def frames_merged(self) -> int:
        with self._lock:
            return self._frames_merged

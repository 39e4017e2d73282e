"""
Histogram containers.

Two variants share bin-edge geometry:

- FrameHistogram: one frame's uint32 counts. Ephemeral, lives for one merge.
- RunningSum: uint64 totals across the run. Owned by HistogramAccumulator.

Invariant for both: len(bin_edges) == bin_count + 1.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from constants import UINT64_MAX
from histogram.frames import Frame
from histogram.geometry import compute_bin_edges


@dataclass
class Histogram:
    """Bin edges plus one count per bin."""
    bin_edges: NDArray[np.float64]
    counts: NDArray[np.unsignedinteger]

    def __post_init__(self) -> None:
        if self.counts.ndim != 1:
            raise ValueError("counts must be one-dimensional")
        if self.bin_edges.shape != (self.counts.shape[0] + 1,):
            raise ValueError(
                f"expected {self.counts.shape[0] + 1} bin edges, got {self.bin_edges.shape[0]}"
            )

    @property
    def bin_count(self) -> int:
        return int(self.counts.shape[0])


@dataclass
class FrameHistogram(Histogram):
    """Per-frame 32-bit counts."""

    @classmethod
    def from_frame(cls, frame: Frame, bin_edges: NDArray[np.float64]) -> FrameHistogram:
        return cls(bin_edges=bin_edges, counts=frame.counts)


@dataclass
class RunningSum(Histogram):
    """Accumulated 64-bit counts. Geometry is fixed once created."""

    @classmethod
    def for_frame(cls, frame: Frame) -> RunningSum:
        """Create an all-zero running sum with the frame's geometry."""
        edges = compute_bin_edges(frame.bin_count, frame.bin_width, frame.bin_offset)
        edges.flags.writeable = False
        return cls(bin_edges=edges, counts=np.zeros(frame.bin_count, dtype=np.uint64))

    def add(self, other: FrameHistogram) -> tuple[int, ...]:
        """
        Add a frame histogram into this sum, saturating at UINT64_MAX.

        Returns:
            Indices of bins that saturated during this addition.
        """
        if other.bin_count != self.bin_count:
            raise ValueError(
                f"bin counts must match for addition ({other.bin_count} != {self.bin_count})"
            )

        # uint64 array addition wraps silently; a wrapped total is smaller
        # than the value it started from.
        previous = self.counts
        total = previous + other.counts.astype(np.uint64)
        overflowed = total < previous
        total[overflowed] = np.uint64(UINT64_MAX)

        self.counts = total
        return tuple(int(i) for i in np.flatnonzero(overflowed))


@dataclass(frozen=True)
class HistogramSnapshot:
    """
    Read-only copy of the running sum, safe to use outside the lock.
    """
    bin_edges: NDArray[np.float64]
    counts: NDArray[np.uint64]
    frames_merged: int

    @property
    def bin_count(self) -> int:
        return int(self.counts.shape[0])

    @classmethod
    def of(cls, running_sum: RunningSum, *, frames_merged: int) -> HistogramSnapshot:
        edges = running_sum.bin_edges.copy()
        counts = running_sum.counts.copy()
        edges.flags.writeable = False
        counts.flags.writeable = False
        return cls(bin_edges=edges, counts=counts, frames_merged=frames_merged)

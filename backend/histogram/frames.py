"""
Frame primitives.

Pure data containers only.
No behavior, no I/O, no accumulation logic.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True, eq=False)
class Frame:
    """
    One decoded header-plus-payload unit.

    frame_number:
        Sender-provided identifier. Informational only, not required unique.

    bin_count:
        Number of bins N. Equals len(counts).

    bin_width / bin_offset:
        Bin geometry in integer TDC clock ticks.

    counts:
        Per-bin counts as a read-only uint32 array in host byte order,
        copied from the array passed in.
    """
    frame_number: int
    bin_count: int
    bin_width: int
    bin_offset: int
    counts: NDArray[np.uint32]

    def __post_init__(self) -> None:
        if self.bin_count < 0:
            raise ValueError(f"bin_count must be >= 0, got {self.bin_count}")
        if self.counts.shape != (self.bin_count,):
            raise ValueError(
                f"counts shape {self.counts.shape} != ({self.bin_count},)"
            )
        if self.counts.dtype != np.uint32:
            raise ValueError(f"counts dtype {self.counts.dtype} != uint32")
        # Own a private read-only copy; the caller's array stays writable.
        counts = self.counts.copy()
        counts.flags.writeable = False
        object.__setattr__(self, "counts", counts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return (
            self.frame_number == other.frame_number
            and self.bin_count == other.bin_count
            and self.bin_width == other.bin_width
            and self.bin_offset == other.bin_offset
            and np.array_equal(self.counts, other.counts)
        )

    __hash__ = None  # type: ignore[assignment]

"""Bin geometry: integer clock-tick parameters -> physical bin edges."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from constants import TDC_CLOCK_PERIOD_S, TICK_MAX, TICK_MIN


def ticks_in_range(bin_count: int, bin_width: int, bin_offset: int) -> bool:
    """
    True if the width, the first edge and the last edge all fit int64.

    Edges are linear in the bin index, so the two end edges bound every
    edge in between.
    """
    last = bin_offset + bin_count * bin_width
    return all(TICK_MIN <= value <= TICK_MAX for value in (bin_width, bin_offset, last))


def compute_bin_edges(
    bin_count: int,
    bin_width: int,
    bin_offset: int,
    *,
    clock_period_s: float = TDC_CLOCK_PERIOD_S,
) -> NDArray[np.float64]:
    """
    Return the bin_count + 1 edges of a histogram, in seconds.

        edges[i] = (bin_offset + i * bin_width) * clock_period_s

    Pure function. Edges are non-decreasing whenever bin_width >= 0.

    Raises:
        ValueError if bin_count is negative or a tick position does not
        fit a signed 64-bit integer.
    """
    if bin_count < 0:
        raise ValueError(f"bin_count must be >= 0, got {bin_count}")
    if not ticks_in_range(bin_count, bin_width, bin_offset):
        raise ValueError(
            f"tick positions out of int64 range: "
            f"count={bin_count} width={bin_width} offset={bin_offset}"
        )

    # Tick positions are exact integers; only the final scale is floating point.
    ticks = np.int64(bin_offset) + np.arange(bin_count + 1, dtype=np.int64) * np.int64(bin_width)
    return ticks.astype(np.float64) * clock_period_s

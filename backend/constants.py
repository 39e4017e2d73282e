"""
PROTOCOL-AS-CONSTANTS
---------------------
Single source of truth for wire-format, histogram and I/O invariants.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific knobs live in config.py, with defaults taken from here.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Digitizer clock
# =============================================================================

# One TDC clock tick is 1.5625/6 ns. Edges are expressed in seconds.
TDC_CLOCK_PERIOD_S: Final[float] = (1.5625 / 6.0) * 1e-9

# =============================================================================
# Wire format (JSON header line + big-endian u32 payload)
# =============================================================================

HEADER_TERMINATOR: Final[bytes] = b"\n"

HEADER_FIELD_FRAME_NUMBER: Final[str] = "frameNumber"
HEADER_FIELD_BIN_SIZE: Final[str] = "binSize"
HEADER_FIELD_BIN_WIDTH: Final[str] = "binWidth"
HEADER_FIELD_BIN_OFFSET: Final[str] = "binOffset"

HEADER_REQUIRED_FIELDS: Final[Tuple[str, ...]] = (
    HEADER_FIELD_FRAME_NUMBER,
    HEADER_FIELD_BIN_SIZE,
    HEADER_FIELD_BIN_WIDTH,
    HEADER_FIELD_BIN_OFFSET,
)

BIN_VALUE_BYTES: Final[int] = 4
BIN_VALUE_WIRE_DTYPE: Final[str] = ">u4"  # network byte order

# Largest binSize accepted from a header. Larger values are malformed.
MAX_BIN_COUNT: Final[int] = 1_048_576

# Geometry ticks (binWidth, binOffset and every edge) must fit a signed 64-bit value.
TICK_MIN: Final[int] = -(2**63)
TICK_MAX: Final[int] = 2**63 - 1

# =============================================================================
# Decoder buffering
# =============================================================================

MAX_BUFFER_SIZE: Final[int] = 32_768

# =============================================================================
# Histogram accumulation
# =============================================================================

UINT64_MAX: Final[int] = 2**64 - 1

# =============================================================================
# Connection
# =============================================================================

DEFAULT_HOST: Final[str] = "127.0.0.1"
DEFAULT_PORT: Final[int] = 8451
SOCKET_RECV_BUFFER_BYTES: Final[int] = 256 * 1024

# =============================================================================
# Persistence
# =============================================================================

DEFAULT_OUTPUT_PATH: Final[str] = "data/tof-histogram-running-sum.txt"
OUTPUT_TITLE: Final[str] = "Time of Flight Histogram Data"
EDGE_FORMAT: Final[str] = "{:.9e}"

# backend/protocol/wire.py
"""
Wire format helpers for histogram frames.

Per frame:
    one UTF-8 JSON object terminated by a single b"\\n", with at least
        frameNumber (int), binSize (int), binWidth (int), binOffset (int)
    immediately followed by
        binSize x u32, big-endian (network order), 4 * binSize bytes

Unknown header fields are ignored.

Usage example:

    result = parse_header(line)
    if not result.ok:
        log_event({"event_type": "HEADER_SKIPPED", "reason": result.error})
    else:
        counts = decode_payload(payload, bin_count=result.header.bin_count)

    wire_bytes = encode_frame(frame_number=1, bin_width=100, bin_offset=0, counts=[3, 5])
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from constants import (
    BIN_VALUE_BYTES,
    BIN_VALUE_WIRE_DTYPE,
    HEADER_FIELD_BIN_OFFSET,
    HEADER_FIELD_BIN_SIZE,
    HEADER_FIELD_BIN_WIDTH,
    HEADER_FIELD_FRAME_NUMBER,
    HEADER_REQUIRED_FIELDS,
    HEADER_TERMINATOR,
    MAX_BIN_COUNT,
)
from histogram.geometry import ticks_in_range


# -------------------------
# Exceptions
# -------------------------

class WireProtocolError(Exception):
    """Base class for wire protocol errors."""


class InvalidPayloadLength(WireProtocolError):
    """
    Raised when a payload does not hold exactly 4 * bin_count bytes.
    """


class InvalidBinValue(WireProtocolError):
    """
    Raised when encoding a count that does not fit an unsigned 32-bit value.
    """


# -------------------------
# Header
# -------------------------

@dataclass(frozen=True)
class FrameHeader:
    frame_number: int
    bin_count: int
    bin_width: int
    bin_offset: int

    @property
    def payload_bytes(self) -> int:
        return self.bin_count * BIN_VALUE_BYTES


@dataclass(frozen=True)
class HeaderParseResult:
    """
    Result of parsing one header line: exactly one of header / error is set.
    """
    header: Optional[FrameHeader] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.header is not None


def _is_int(value: Any) -> bool:
    # JSON true/false decode to bool, which is an int subclass.
    return isinstance(value, int) and not isinstance(value, bool)


def parse_header(line: bytes, *, max_bin_count: int = MAX_BIN_COUNT) -> HeaderParseResult:
    """
    Parse one header line (without its terminator).

    A binSize above `max_bin_count`, or geometry whose tick positions do
    not fit int64, makes the header malformed.

    Pure function; never raises.
    """
    try:
        obj = json.loads(line.decode("utf-8"))
    except UnicodeDecodeError as e:
        return HeaderParseResult(error=f"invalid utf-8: {e}")
    except ValueError as e:
        return HeaderParseResult(error=f"invalid json: {e}")

    if not isinstance(obj, dict):
        return HeaderParseResult(error=f"header is {type(obj).__name__}, not an object")

    missing = [name for name in HEADER_REQUIRED_FIELDS if name not in obj]
    if missing:
        return HeaderParseResult(error=f"missing fields: {', '.join(missing)}")

    non_int = [name for name in HEADER_REQUIRED_FIELDS if not _is_int(obj[name])]
    if non_int:
        return HeaderParseResult(error=f"non-integer fields: {', '.join(non_int)}")

    bin_count = obj[HEADER_FIELD_BIN_SIZE]
    if bin_count < 0:
        return HeaderParseResult(error=f"negative {HEADER_FIELD_BIN_SIZE}: {bin_count}")
    if bin_count > max_bin_count:
        return HeaderParseResult(
            error=f"{HEADER_FIELD_BIN_SIZE} {bin_count} exceeds limit {max_bin_count}"
        )

    bin_width = obj[HEADER_FIELD_BIN_WIDTH]
    bin_offset = obj[HEADER_FIELD_BIN_OFFSET]
    if not ticks_in_range(bin_count, bin_width, bin_offset):
        return HeaderParseResult(error="bin geometry exceeds int64 tick range")

    return HeaderParseResult(
        header=FrameHeader(
            frame_number=obj[HEADER_FIELD_FRAME_NUMBER],
            bin_count=bin_count,
            bin_width=bin_width,
            bin_offset=bin_offset,
        )
    )


# -------------------------
# Payload
# -------------------------

def decode_payload(payload: bytes, *, bin_count: int) -> NDArray[np.uint32]:
    """
    Convert a big-endian u32 payload into a host-order uint32 array.
    """
    expected = bin_count * BIN_VALUE_BYTES
    if len(payload) != expected:
        raise InvalidPayloadLength(f"payload length {len(payload)} != {expected}")

    return np.frombuffer(payload, dtype=BIN_VALUE_WIRE_DTYPE).astype(np.uint32)


# -------------------------
# Encoding (tests, tools/frame_server.py)
# -------------------------

def encode_frame(
    *,
    frame_number: int,
    bin_width: int,
    bin_offset: int,
    counts: Sequence[int] | NDArray[np.integer],
    extra_fields: Mapping[str, Any] | None = None,
) -> bytes:
    """
    Encode one frame as header line + big-endian payload.

    `extra_fields` are added to the header; they cannot override the
    mandatory ones.
    """
    values = np.asarray(counts, dtype=np.int64)
    if values.ndim != 1:
        raise InvalidBinValue("counts must be one-dimensional")
    if values.size and (values.min() < 0 or values.max() > np.iinfo(np.uint32).max):
        raise InvalidBinValue("counts must fit in an unsigned 32-bit integer")

    header: dict[str, Any] = dict(extra_fields or {})
    header.update({
        HEADER_FIELD_FRAME_NUMBER: frame_number,
        HEADER_FIELD_BIN_SIZE: int(values.size),
        HEADER_FIELD_BIN_WIDTH: bin_width,
        HEADER_FIELD_BIN_OFFSET: bin_offset,
    })

    line = json.dumps(header, separators=(",", ":")).encode("utf-8") + HEADER_TERMINATOR
    return line + values.astype(BIN_VALUE_WIRE_DTYPE).tobytes()

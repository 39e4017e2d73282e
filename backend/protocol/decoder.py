"""
Frame decoder: byte stream -> Frame iterator.

One decoder per connection. Iteration is lazy and cannot be restarted.

Buffering:
- Owned bytearray with an explicit read cursor
- _compact() drops consumed bytes after every consumed line/frame
- Bounded by max_buffer_size. If it fills up without a newline, every
  buffered byte is discarded and scanning restarts with the next bytes
  received. A partially received frame is lost in that case.

Payload:
- Bytes already buffered after the header's newline are the start of
  the payload
- The rest is pulled with receive_exact()
- A header whose binSize exceeds max_bin_count is skipped like any
  other malformed line, so no payload read is sized from it

Termination:
- Peer closes while scanning for a header  -> StopIteration
- Socket error while scanning for a header -> ConnectionIOError
- Close or error while reading a payload   -> TruncatedPayloadError
"""

from __future__ import annotations

from typing import Iterator, Protocol

from constants import HEADER_TERMINATOR, MAX_BIN_COUNT, MAX_BUFFER_SIZE
from histogram.frames import Frame
from observability.logger import log_event
from protocol.wire import FrameHeader, decode_payload, parse_header
from transport.connection import ConnectionReaderError


class ByteSource(Protocol):
    def receive(self, max_bytes: int) -> bytes: ...

    def receive_exact(self, n: int) -> bytes: ...


# -------------------------
# Exceptions
# -------------------------

class FrameDecodeError(Exception):
    """Base class for fatal decoder errors."""


class TruncatedPayloadError(FrameDecodeError):
    """
    Raised when the stream closes or fails before a frame's payload is
    complete. The connection is unusable; decoding stops.
    """

    def __init__(self, message: str, *, frame_number: int) -> None:
        super().__init__(message)
        self.frame_number = frame_number


# -------------------------
# Decoder
# -------------------------

class FrameDecoder:
    """Iterator of Frames read from a ByteSource."""

    def __init__(
        self,
        source: ByteSource,
        *,
        max_buffer_size: int = MAX_BUFFER_SIZE,
        max_bin_count: int = MAX_BIN_COUNT,
    ) -> None:
        if max_buffer_size <= 1:
            raise ValueError("max_buffer_size must be > 1")
        if max_bin_count < 0:
            raise ValueError("max_bin_count must be >= 0")

        self._source = source
        self._max_buffer_size = max_buffer_size
        self._max_bin_count = max_bin_count
        self._buffer = bytearray()
        self._cursor = 0
        self._finished = False

        self.frames_decoded = 0
        self.lines_skipped = 0
        self.buffer_resets = 0

    def __iter__(self) -> Iterator[Frame]:
        return self

    def __next__(self) -> Frame:
        while not self._finished:
            newline = self._buffer.find(HEADER_TERMINATOR, self._cursor)
            if newline >= 0:
                frame = self._consume_line(newline)
                if frame is not None:
                    return frame
                continue

            self._compact()
            if len(self._buffer) >= self._max_buffer_size:
                self._reset_buffer()

            self._fill()

        raise StopIteration

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def buffered_bytes(self) -> int:
        return len(self._buffer) - self._cursor

    # -------------------------
    # Internals
    # -------------------------

    def _consume_line(self, newline: int) -> Frame | None:
        line = bytes(self._buffer[self._cursor:newline])
        self._cursor = newline + 1

        result = parse_header(line, max_bin_count=self._max_bin_count)
        if result.header is None:
            self.lines_skipped += 1
            self._compact()
            log_event({
                "event_type": "HEADER_SKIPPED",
                "reason": result.error,
                "line_bytes": len(line),
            })
            return None

        frame = self._read_frame(result.header)
        self._compact()
        self.frames_decoded += 1
        return frame

    def _read_frame(self, header: FrameHeader) -> Frame:
        needed = header.payload_bytes
        take = min(len(self._buffer) - self._cursor, needed)
        payload = bytes(self._buffer[self._cursor:self._cursor + take])
        self._cursor += take

        if take < needed:
            try:
                payload += self._source.receive_exact(needed - take)
            except ConnectionReaderError as exc:
                self._finished = True
                raise TruncatedPayloadError(
                    f"payload of frame {header.frame_number} incomplete: {exc}",
                    frame_number=header.frame_number,
                ) from exc

        return Frame(
            frame_number=header.frame_number,
            bin_count=header.bin_count,
            bin_width=header.bin_width,
            bin_offset=header.bin_offset,
            counts=decode_payload(payload, bin_count=header.bin_count),
        )

    def _fill(self) -> None:
        try:
            chunk = self._source.receive(self._max_buffer_size - len(self._buffer))
        except ConnectionReaderError:
            self._finished = True
            raise

        if not chunk:
            self._finished = True
            if self.buffered_bytes:
                log_event({
                    "event_type": "DECODER_TRAILING_BYTES",
                    "bytes": self.buffered_bytes,
                })
            return

        self._buffer.extend(chunk)

    def _compact(self) -> None:
        if self._cursor:
            del self._buffer[:self._cursor]
            self._cursor = 0

    def _reset_buffer(self) -> None:
        self.buffer_resets += 1
        log_event({
            "event_type": "DECODER_BUFFER_RESET",
            "discarded_bytes": len(self._buffer),
            "max_buffer_size": self._max_buffer_size,
        })
        self._buffer.clear()
        self._cursor = 0

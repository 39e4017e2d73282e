"""
Histogram client: one connection, one run.

Responsibilities:
- Owns the PipelineStatus state machine
- Wires ConnectionReader -> FrameDecoder -> HistogramAccumulator -> PersistenceWriter
- Maps fatal conditions to a process exit status

Per frame:
    merge (lock held) -> snapshot (lock held) -> write (lock released)

Not responsible for:
- Reconnecting; a terminal status ends the run
- Printing frame contents
"""

from __future__ import annotations

import threading

from config import ClientConfig
from histogram.accumulator import GeometryMismatchError, HistogramAccumulator
from histogram.frames import Frame
from histogram.models import HistogramSnapshot
from histogram.persistence import PersistenceWriter
from observability.logger import log_event
from observability.metrics import timed
from protocol.decoder import FrameDecoder, TruncatedPayloadError
from session.connection_status import PipelineStatus, can_transition
from transport.connection import ConnectionIOError, ConnectionReader


EXIT_OK = 0
EXIT_FAILURE = 1


class HistogramClient:
    """
    Runs the ingestion pipeline for a single connection.

    `run()` blocks on the calling thread. `shutdown()` and `snapshot()`
    may be called from other threads.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        reader: ConnectionReader | None = None,
        accumulator: HistogramAccumulator | None = None,
        writer: PersistenceWriter | None = None,
    ) -> None:
        self.config = config
        self._reader = reader or ConnectionReader(
            config.host,
            config.port,
            recv_buffer_bytes=config.recv_buffer_bytes,
            recv_timeout_s=config.recv_timeout_s,
            tcp_nodelay=config.tcp_nodelay,
        )
        self._accumulator = accumulator or HistogramAccumulator()
        self._writer = writer or PersistenceWriter(config.output_path)

        self._status_lock = threading.Lock()
        self._status = PipelineStatus.DISCONNECTED
        self._shutdown_requested = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def status(self) -> PipelineStatus:
        with self._status_lock:
            return self._status

    def snapshot(self) -> HistogramSnapshot | None:
        return self._accumulator.snapshot()

    def shutdown(self) -> None:
        """Stop the run. Wakes a blocked receive by closing the reader."""
        with self._status_lock:
            self._shutdown_requested = True
        self._transition(PipelineStatus.SHUTDOWN)
        self._reader.close()

    def run(self) -> int:
        """
        Connect and ingest until the peer closes or a fatal error occurs.

        Returns:
            EXIT_OK on orderly close or requested shutdown,
            EXIT_FAILURE on connect/I-O failure, truncated payload or
            geometry mismatch.
        """
        self._writer.prepare()

        if not self._transition(PipelineStatus.CONNECTING):
            return EXIT_OK

        if not self._reader.is_connected:
            try:
                self._reader.connect()
            except ConnectionIOError as exc:
                if self._is_shutdown_requested():
                    return EXIT_OK
                log_event({"event_type": "CONNECT_FAILED", "error": str(exc)})
                self._transition(PipelineStatus.IO_ERROR)
                return EXIT_FAILURE

        try:
            if not self._transition(PipelineStatus.STREAMING):
                return EXIT_OK

            log_event({"event_type": "WAITING_FOR_DATA"})
            return self._ingest()
        finally:
            self._reader.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ingest(self) -> int:
        decoder = FrameDecoder(
            self._reader,
            max_buffer_size=self.config.max_buffer_size,
            max_bin_count=self.config.max_bin_count,
        )

        try:
            for frame in decoder:
                self._process(frame)

        except (ConnectionIOError, TruncatedPayloadError) as exc:
            if self._is_shutdown_requested():
                return self._finish(decoder, PipelineStatus.SHUTDOWN, EXIT_OK)
            log_event({
                "event_type": "STREAM_FAILED",
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return self._finish(decoder, PipelineStatus.IO_ERROR, EXIT_FAILURE)

        except GeometryMismatchError as exc:
            log_event({
                "event_type": "GEOMETRY_MISMATCH",
                "frame_number": exc.frame_number,
                "expected_bins": exc.expected,
                "actual_bins": exc.actual,
            })
            return self._finish(decoder, PipelineStatus.SHUTDOWN, EXIT_FAILURE)

        return self._finish(decoder, PipelineStatus.CLOSED_BY_PEER, EXIT_OK)

    def _process(self, frame: Frame) -> None:
        result = self._accumulator.merge(frame)

        if result.overflowed:
            log_event({
                "event_type": "BIN_OVERFLOW",
                "frame_number": frame.frame_number,
                "bins": list(result.overflowed_bins),
            })

        snapshot = self._accumulator.snapshot()
        if snapshot is None:
            return

        with timed("persist_running_sum", details={"frame_number": frame.frame_number}):
            persisted = self._writer.write(snapshot)

        log_event({
            "event_type": "FRAME_PROCESSED",
            "frame_number": frame.frame_number,
            "bin_count": frame.bin_count,
            "frames_merged": snapshot.frames_merged,
            "persisted": persisted,
        })

    def _finish(self, decoder: FrameDecoder, status: PipelineStatus, exit_code: int) -> int:
        self._transition(status)
        log_event({
            "event_type": "RUN_COMPLETE",
            "status": self.status.value,
            "exit_code": exit_code,
            "frames_decoded": decoder.frames_decoded,
            "lines_skipped": decoder.lines_skipped,
            "buffer_resets": decoder.buffer_resets,
        })
        return exit_code

    def _is_shutdown_requested(self) -> bool:
        with self._status_lock:
            return self._shutdown_requested

    def _transition(self, target: PipelineStatus) -> bool:
        with self._status_lock:
            current = self._status
            if not can_transition(current, target):
                return False
            self._status = target

        log_event({
            "event_type": "STATUS_CHANGED",
            "from": current.value,
            "to": target.value,
        })
        return True

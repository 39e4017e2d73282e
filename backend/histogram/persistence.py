"""
Running-sum persistence.

Writes a HistogramSnapshot as text, fully overwriting one file:

    # Time of Flight Histogram Data
    # Bins: <N>
    #
    <edge_0><TAB><count_0>
    ...
    <edge_N-1><TAB><count_N-1>
    <edge_N>

Failures are logged and reported via the return value, never raised:
in-memory state stays authoritative and the next write catches up.
No atomic rename; a concurrent reader may observe a torn file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from constants import DEFAULT_OUTPUT_PATH, EDGE_FORMAT, OUTPUT_TITLE
from histogram.models import HistogramSnapshot
from observability.logger import log_event


def format_edge(edge: float) -> str:
    return EDGE_FORMAT.format(float(edge))


def render_lines(snapshot: HistogramSnapshot) -> Iterator[str]:
    """Yield the file's lines (without trailing newlines)."""
    yield f"# {OUTPUT_TITLE}"
    yield f"# Bins: {snapshot.bin_count}"
    yield "#"
    for edge, count in zip(snapshot.bin_edges[:-1], snapshot.counts):
        yield f"{format_edge(edge)}\t{int(count)}"
    yield format_edge(snapshot.bin_edges[-1])


class PersistenceWriter:
    """Overwrites one well-known file with the latest snapshot."""

    def __init__(self, path: str | Path = DEFAULT_OUTPUT_PATH) -> None:
        self.path = Path(path)

    def prepare(self) -> bool:
        """Create the parent directory. Returns False (and logs) on failure."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log_event({
                "event_type": "PERSIST_PREPARE_FAILED",
                "path": str(self.path.parent),
                "error": str(exc),
            })
            return False
        return True

    def write(self, snapshot: HistogramSnapshot) -> bool:
        """
        Serialize `snapshot` over the output file.

        Returns:
            True if written, False if the file could not be opened or written.
        """
        text = "\n".join(render_lines(snapshot)) + "\n"
        try:
            with self.path.open("w", encoding="utf-8") as fh:
                fh.write(text)
        except OSError as exc:
            log_event({
                "event_type": "PERSIST_FAILED",
                "path": str(self.path),
                "error": str(exc),
            })
            return False
        return True

"""
Synthetic frame server for manual end-to-end runs.

Listens on one port, accepts a single client, sends N frames of
Poisson-distributed counts, then closes the connection.

    PYTHONPATH=backend python tools/frame_server.py 8451 10
    TOF_PORT=8451 tof-histogram-client
"""

import socket
import sys
import time
from typing import Iterator

import numpy as np

from protocol.wire import encode_frame

BIN_COUNT = 64
BIN_WIDTH = 100
BIN_OFFSET = 0
MEAN_COUNT = 50.0


def frame_stream(
    frames: int,
    *,
    bin_count: int = BIN_COUNT,
    bin_width: int = BIN_WIDTH,
    bin_offset: int = BIN_OFFSET,
    seed: int | None = None,
) -> Iterator[bytes]:
    rng = np.random.default_rng(seed)
    for frame_number in range(1, frames + 1):
        counts = rng.poisson(MEAN_COUNT, size=bin_count)
        yield encode_frame(
            frame_number=frame_number,
            bin_width=bin_width,
            bin_offset=bin_offset,
            counts=counts,
            extra_fields={"source": "frame_server"},
        )


def main(port: int, frames: int, interval_s: float = 0.5):
    with socket.create_server(("127.0.0.1", port)) as server:
        print(f"listening on 127.0.0.1:{port}")
        conn, addr = server.accept()
        print(f"client connected from {addr[0]}:{addr[1]}")
        with conn:
            for payload in frame_stream(frames):
                conn.sendall(payload)
                time.sleep(interval_s)
    print(f"sent {frames} frames")


if __name__ == "__main__":
    if len(sys.argv) not in (3, 4):
        print("Usage: python frame_server.py PORT FRAMES [INTERVAL_S]")
        sys.exit(1)

    main(
        int(sys.argv[1]),
        int(sys.argv[2]),
        float(sys.argv[3]) if len(sys.argv) == 4 else 0.5,
    )

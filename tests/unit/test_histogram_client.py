# pylint: disable=missing-module-docstring,missing-function-docstring

import socket
import threading
import time
from typing import Any

import pytest

import session.histogram_client as client_mod
from config import ClientConfig
from constants import TDC_CLOCK_PERIOD_S
from protocol.wire import encode_frame
from session.connection_status import PipelineStatus
from session.histogram_client import EXIT_FAILURE, EXIT_OK, HistogramClient
from transport.connection import ConnectionReader


@pytest.fixture
def events(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(client_mod, "log_event", emitted.append)
    return emitted


@pytest.fixture
def config(tmp_path) -> ClientConfig:
    return ClientConfig(output_path=str(tmp_path / "data" / "tof-histogram-running-sum.txt"))


def frame(frame_number: int, counts) -> bytes:
    return encode_frame(frame_number=frame_number, bin_width=100, bin_offset=0, counts=counts)


def run_with_stream(config: ClientConfig, data: bytes) -> tuple[HistogramClient, int]:
    left, right = socket.socketpair()
    right.sendall(data)
    right.close()
    client = HistogramClient(config, reader=ConnectionReader.from_socket(left))
    return client, client.run()


def event_types(events: list[dict[str, Any]]) -> list[str]:
    return [e["event_type"] for e in events]


# ---------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------

def test_end_to_end_running_sum_and_file(config, events):
    client, code = run_with_stream(config, frame(1, [3, 5]) + frame(2, [3, 5]))

    assert code == EXIT_OK
    assert client.status is PipelineStatus.CLOSED_BY_PEER

    snap = client.snapshot()
    assert snap is not None
    assert snap.counts.tolist() == [6, 10]
    assert snap.bin_edges.tolist() == [0.0, 100 * TDC_CLOCK_PERIOD_S, 200 * TDC_CLOCK_PERIOD_S]

    with open(config.output_path, encoding="utf-8") as fh:
        lines = fh.read().splitlines()
    assert lines == [
        "# Time of Flight Histogram Data",
        "# Bins: 2",
        "#",
        "0.000000000e+00\t6",
        "2.604166667e-08\t10",
        "5.208333333e-08",
    ]

    processed = [e for e in events if e["event_type"] == "FRAME_PROCESSED"]
    assert [e["frames_merged"] for e in processed] == [1, 2]
    assert all(e["persisted"] for e in processed)


def test_status_walks_the_state_machine(config, events):
    run_with_stream(config, frame(1, [1]))

    changes = [(e["from"], e["to"]) for e in events if e["event_type"] == "STATUS_CHANGED"]
    assert changes == [
        ("DISCONNECTED", "CONNECTING"),
        ("CONNECTING", "STREAMING"),
        ("STREAMING", "CLOSED_BY_PEER"),
    ]


def test_malformed_header_does_not_touch_running_sum(config, events):
    bad = b'{"frameNumber":2,"binWidth":100,"binOffset":0}\n'
    client, code = run_with_stream(config, frame(1, [1, 1]) + bad + frame(3, [2, 2]))

    assert code == EXIT_OK
    snap = client.snapshot()
    assert snap is not None
    assert snap.counts.tolist() == [3, 3]
    complete = [e for e in events if e["event_type"] == "RUN_COMPLETE"][0]
    assert complete["lines_skipped"] == 1
    assert complete["frames_decoded"] == 2


@pytest.mark.parametrize(
    "bad",
    [
        b'{"frameNumber":2,"binSize":4611686018427387904,"binWidth":100,"binOffset":0}\n',
        b'{"frameNumber":2,"binSize":2,"binWidth":9223372036854775808,"binOffset":0}\n',
    ],
)
def test_oversized_header_values_are_skipped_not_fatal(config, events, bad):
    client, code = run_with_stream(config, bad + frame(3, [2, 2]) + frame(4, [1, 1]))

    assert code == EXIT_OK
    assert client.status is PipelineStatus.CLOSED_BY_PEER
    snap = client.snapshot()
    assert snap is not None
    assert snap.counts.tolist() == [3, 3]
    assert snap.bin_edges.tolist() == [0.0, 100 * TDC_CLOCK_PERIOD_S, 200 * TDC_CLOCK_PERIOD_S]
    complete = [e for e in events if e["event_type"] == "RUN_COMPLETE"][0]
    assert complete["lines_skipped"] == 1


def test_empty_stream_writes_nothing(config, events):
    client, code = run_with_stream(config, b"")

    assert code == EXIT_OK
    assert client.snapshot() is None
    with pytest.raises(FileNotFoundError):
        open(config.output_path, encoding="utf-8").close()


def test_persist_failure_is_not_fatal(tmp_path, events):
    # Output path is a directory: every write fails.
    cfg = ClientConfig(output_path=str(tmp_path))
    client, code = run_with_stream(cfg, frame(1, [1]) + frame(2, [2]))

    assert code == EXIT_OK
    snap = client.snapshot()
    assert snap is not None
    assert snap.counts.tolist() == [3]
    processed = [e for e in events if e["event_type"] == "FRAME_PROCESSED"]
    assert [e["persisted"] for e in processed] == [False, False]


# ---------------------------------------------------------------------
# Fatal conditions
# ---------------------------------------------------------------------

def test_geometry_mismatch_aborts_run(config, events):
    client, code = run_with_stream(config, frame(1, [1] * 10) + frame(2, [1] * 11) + frame(3, [1] * 10))

    assert code == EXIT_FAILURE
    assert client.status is PipelineStatus.SHUTDOWN
    snap = client.snapshot()
    assert snap is not None
    assert snap.counts.tolist() == [1] * 10
    assert "GEOMETRY_MISMATCH" in event_types(events)


def test_truncated_payload_is_io_error(config, events):
    client, code = run_with_stream(config, frame(1, [1, 2]) + frame(2, [1, 2])[:-3])

    assert code == EXIT_FAILURE
    assert client.status is PipelineStatus.IO_ERROR
    snap = client.snapshot()
    assert snap is not None
    assert snap.counts.tolist() == [1, 2]
    failed = [e for e in events if e["event_type"] == "STREAM_FAILED"]
    assert failed[0]["exception"] == "TruncatedPayloadError"


def test_connect_failure_is_io_error(config, events):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    cfg = ClientConfig(port=port, output_path=config.output_path)

    client = HistogramClient(cfg)

    assert client.run() == EXIT_FAILURE
    assert client.status is PipelineStatus.IO_ERROR
    assert "CONNECT_FAILED" in event_types(events)


# ---------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------

def test_shutdown_from_another_thread_stops_blocked_run(config, events):
    left, right = socket.socketpair()
    client = HistogramClient(config, reader=ConnectionReader.from_socket(left))
    right.sendall(frame(1, [4]))
    result: list[int] = []

    t = threading.Thread(target=lambda: result.append(client.run()))
    t.start()
    try:
        deadline = time.monotonic() + 5.0
        while client.snapshot() is None and time.monotonic() < deadline:
            time.sleep(0.01)
        client.shutdown()
        t.join(timeout=5.0)
    finally:
        right.close()

    assert not t.is_alive()
    assert result == [EXIT_OK]
    assert client.status is PipelineStatus.SHUTDOWN
    snap = client.snapshot()
    assert snap is not None
    assert snap.counts.tolist() == [4]


def test_shutdown_before_run_skips_connect(config, events):
    client = HistogramClient(config)
    client.shutdown()

    assert client.run() == EXIT_OK
    assert client.status is PipelineStatus.SHUTDOWN
    assert "CONNECT_FAILED" not in event_types(events)

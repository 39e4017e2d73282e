"""
Blocking TCP connection reader.

Responsibilities:
- Open exactly one client connection to the frame server
- Supply bytes on demand (`receive`, `receive_exact`)
- Translate socket failures into ConnectionReaderError subclasses

Non-responsibilities:
- No framing (see protocol.decoder)
- No reconnect or retry; a closed reader stays closed

Result convention for `receive`:
    non-empty bytes -> data
    b""             -> orderly close by peer
    raises          -> ConnectionIOError (includes receive timeouts)
"""

from __future__ import annotations

import contextlib
import socket
from types import TracebackType

from observability.logger import log_event


# -------------------------
# Exceptions
# -------------------------

class ConnectionReaderError(Exception):
    """Base class for connection reader errors."""


class ConnectionIOError(ConnectionReaderError):
    """
    Raised on a low-level socket failure (reset, timeout, not connected).

    The connection is unusable afterwards.
    """


class ConnectionClosedError(ConnectionReaderError):
    """
    Raised by receive_exact when the peer closes before `n` bytes arrived.
    """

    def __init__(self, message: str, *, received: int, expected: int) -> None:
        super().__init__(message)
        self.received = received
        self.expected = expected


# -------------------------
# Reader
# -------------------------

class ConnectionReader:
    """
    One blocking stream connection.

    Use `connect()` for a real TCP client, or `from_socket()` to wrap an
    already-connected socket (tests use socket.socketpair()).
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        recv_buffer_bytes: int | None = None,
        recv_timeout_s: float | None = None,
        tcp_nodelay: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self._recv_buffer_bytes = recv_buffer_bytes
        self._recv_timeout_s = recv_timeout_s
        self._tcp_nodelay = tcp_nodelay
        self._sock: socket.socket | None = None
        self._connected = False

    @classmethod
    def from_socket(cls, sock: socket.socket) -> ConnectionReader:
        """Wrap an already-connected socket."""
        reader = cls(host="<socket>", port=0)
        reader._sock = sock
        reader._connected = True
        return reader

    # -------------------------
    # Lifecycle
    # -------------------------

    def connect(self) -> None:
        """
        Open the TCP connection.

        Raises:
            ConnectionIOError if the socket cannot be created or connected.
        """
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as exc:
            raise ConnectionIOError(f"socket creation failed: {exc}") from exc

        # Tuning failures are logged and ignored; the connection still works.
        if self._tcp_nodelay:
            self._set_option(sock, socket.IPPROTO_TCP, socket.TCP_NODELAY, 1, "TCP_NODELAY")
        if self._recv_buffer_bytes:
            self._set_option(
                sock, socket.SOL_SOCKET, socket.SO_RCVBUF, self._recv_buffer_bytes, "SO_RCVBUF"
            )

        log_event({
            "event_type": "CONNECTING",
            "host": self.host,
            "port": self.port,
        })

        try:
            sock.connect((self.host, self.port))
        except OSError as exc:
            sock.close()
            raise ConnectionIOError(
                f"connection to {self.host}:{self.port} failed: {exc}"
            ) from exc

        # Timeout applies to receives only, not to connect().
        sock.settimeout(self._recv_timeout_s)

        self._sock = sock
        self._connected = True

        log_event({
            "event_type": "CONNECTED",
            "host": self.host,
            "port": self.port,
        })

    def close(self) -> None:
        """
        Close the socket. Safe to call more than once, and from another
        thread: shutdown() wakes a receive blocked in recv().
        """
        sock, self._sock = self._sock, None
        self._connected = False
        if sock is not None:
            with contextlib.suppress(OSError):  # already disconnected
                sock.shutdown(socket.SHUT_RDWR)
            sock.close()

    @property
    def is_connected(self) -> bool:
        return self._connected

    def __enter__(self) -> ConnectionReader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -------------------------
    # Receive primitives
    # -------------------------

    def receive(self, max_bytes: int) -> bytes:
        """
        Receive up to `max_bytes`.

        Returns b"" once the peer has closed the connection.
        """
        if max_bytes <= 0:
            raise ValueError("max_bytes must be > 0")
        # close() may run on another thread; read the attribute once.
        sock = self._sock
        if not self._connected or sock is None:
            raise ConnectionIOError("receive on a connection that is not open")

        try:
            data = sock.recv(max_bytes)
        except OSError as exc:
            self._connected = False
            raise ConnectionIOError(f"socket error: {exc}") from exc

        if not data:
            self._connected = False
            log_event({"event_type": "CONNECTION_CLOSED_BY_PEER"})

        return data

    def receive_exact(self, n: int) -> bytes:
        """
        Receive exactly `n` bytes.

        Raises:
            ConnectionClosedError if the peer closes first.
            ConnectionIOError on socket failure.
        """
        if n < 0:
            raise ValueError("n must be >= 0")

        chunks: list[bytes] = []
        received = 0
        while received < n:
            chunk = self.receive(n - received)
            if not chunk:
                raise ConnectionClosedError(
                    f"peer closed after {received} of {n} bytes",
                    received=received,
                    expected=n,
                )
            chunks.append(chunk)
            received += len(chunk)

        return b"".join(chunks)

    # -------------------------
    # Helpers
    # -------------------------

    @staticmethod
    def _set_option(sock: socket.socket, level: int, option: int, value: int, name: str) -> None:
        try:
            sock.setsockopt(level, option, value)
        except OSError as exc:
            log_event({
                "event_type": "SOCKET_OPTION_FAILED",
                "option": name,
                "error": str(exc),
            })

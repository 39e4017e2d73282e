"""
Client configuration.

Responsibilities:
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No protocol constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    DEFAULT_HOST,
    DEFAULT_OUTPUT_PATH,
    DEFAULT_PORT,
    MAX_BIN_COUNT,
    MAX_BUFFER_SIZE,
    SOCKET_RECV_BUFFER_BYTES,
)


def _optional_float(raw: str | None) -> float | None:
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


@dataclass(frozen=True)
class ClientConfig:
    """
    Immutable client configuration.

    Constructed once at process startup and passed down to HistogramClient.
    """

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    recv_buffer_bytes: int = SOCKET_RECV_BUFFER_BYTES
    recv_timeout_s: float | None = None  # None = block forever
    tcp_nodelay: bool = True

    # ------------------------------------------------------------------
    # Decoder
    # ------------------------------------------------------------------

    max_buffer_size: int = MAX_BUFFER_SIZE
    max_bin_count: int = MAX_BIN_COUNT

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    output_path: str = DEFAULT_OUTPUT_PATH

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"port out of range: {self.port}")
        if self.max_buffer_size <= 1:
            raise ValueError("max_buffer_size must be > 1")
        if self.max_bin_count < 0:
            raise ValueError("max_bin_count must be >= 0")
        if self.recv_timeout_s is not None and self.recv_timeout_s <= 0:
            raise ValueError("recv_timeout_s must be > 0 when set")

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> ClientConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a variable is present but malformed.
        """
        return ClientConfig(
            host=os.environ.get("TOF_HOST", DEFAULT_HOST),
            port=int(os.environ.get("TOF_PORT", str(DEFAULT_PORT))),
            recv_buffer_bytes=int(
                os.environ.get("TOF_RECV_BUFFER_BYTES", str(SOCKET_RECV_BUFFER_BYTES))
            ),
            recv_timeout_s=_optional_float(os.environ.get("TOF_RECV_TIMEOUT_S")),
            tcp_nodelay=os.environ.get("TOF_TCP_NODELAY", "1") == "1",
            max_buffer_size=int(
                os.environ.get("TOF_MAX_BUFFER_BYTES", str(MAX_BUFFER_SIZE))
            ),
            max_bin_count=int(os.environ.get("TOF_MAX_BINS", str(MAX_BIN_COUNT))),
            output_path=os.environ.get("TOF_OUTPUT_PATH", DEFAULT_OUTPUT_PATH),
        )

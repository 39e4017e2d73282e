"""
Process entry point for the TOF histogram client.

Configuration comes from the environment (see config.ClientConfig):

    TOF_HOST=192.168.1.100 TOF_PORT=9000 tof-histogram-client

One run == one connection. The process exits when the peer disconnects;
restarting is left to the process manager.
"""

from __future__ import annotations

import sys

from config import ClientConfig
from observability.logger import log_event
from session.histogram_client import EXIT_OK, HistogramClient

EXIT_CONFIG_ERROR = 2


def main() -> int:
    try:
        config = ClientConfig.load_from_env()
    except ValueError as exc:
        log_event({"event_type": "CONFIG_ERROR", "error": str(exc)})
        return EXIT_CONFIG_ERROR

    log_event({
        "event_type": "CLIENT_START",
        "host": config.host,
        "port": config.port,
        "output_path": config.output_path,
    })

    client = HistogramClient(config)
    try:
        return client.run()
    except KeyboardInterrupt:
        client.shutdown()
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

"""Command line entry point for the loopback file chunk server."""

import json
import logging
import signal
import sys
import threading

from chunkserver.bootstrap.config import config_from_args, parse_cli_args
from chunkserver.bootstrap.logging_setup import configure_logging
from chunkserver.domain.correlation_id import CorrelationLoggerAdapter
from chunkserver.lifecycle.handle import start_server

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("chunk_server.server"), {})


def main(argv: list[str] | None = None) -> int:
    """Start the server, print its start-up result as JSON and serve until signalled."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination)
    config = config_from_args(args)

    SERVER_LOGGER.info(
        "Starting chunk server",
        extra={
            "host": config.host,
            "port": args.port,
            "chunk_size": config.chunk_size,
            "encryption": config.encryption_enabled,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "socket_timeout": config.socket_timeout,
            "shutdown_grace_seconds": config.shutdown_grace_seconds,
        },
    )
    stop_requested = threading.Event()

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info("Received shutdown signal", extra={"signal": signum})
        stop_requested.set()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    handle = start_server(config)
    print(json.dumps(handle.info()), flush=True)
    if not handle.ready:
        handle.stop()
        return 1

    while not stop_requested.wait(0.5):
        pass
    handle.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())

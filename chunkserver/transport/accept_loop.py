"""Main connection acceptance loop."""

import logging
import socket
import threading

from chunkserver.domain.correlation_id import CorrelationLoggerAdapter
from chunkserver.transport.context import ServerInstance
from chunkserver.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("chunk_server.transport.accept"), {}
)


def _handle_accepted_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    instance: ServerInstance,
) -> None:
    """Hand a newly accepted connection to its own worker thread."""
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={
                "event": "client_accepted",
                "client": f"{client_address[0]}:{client_address[1]}",
            },
        )
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, instance),
        name=f"chunk-worker-{client_address[1]}",
        daemon=True,
    )
    thread.start()


def run_accept_loop(server_socket: socket.socket, instance: ServerInstance) -> None:
    """Accept connections until the instance lifecycle asks to stop."""
    lifecycle = instance.lifecycle
    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={"event": "server_listening", "port": instance.port},
    )
    try:
        while lifecycle is None or not lifecycle.should_stop():
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle is None or lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if lifecycle is not None and lifecycle.should_stop():
                client_socket.close()
                break

            _handle_accepted_client(client_socket, client_address, instance)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info(
            "Listening socket released",
            extra={"event": "listener_closed", "port": instance.port},
        )

"""Per-connection worker: serves requests until the connection must close."""

import logging
import select
import socket
import threading
import time

from chunkserver.domain.correlation_id import CorrelationLoggerAdapter, request_scope
from chunkserver.domain.errors import ChunkError
from chunkserver.domain.response_builders import error_response
from chunkserver.pipeline.dispatch import dispatch_request
from chunkserver.pipeline.io import receive_request, send_response
from chunkserver.transport.context import ServerInstance

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("chunk_server.transport.worker"), {}
)

IDLE_POLL_SECONDS = 0.5
LINGER_SECONDS = 0.5
LINGER_MAX_BYTES = 1024 * 1024


def _await_next_request(client_socket: socket.socket, instance: ServerInstance) -> bool:
    """Wait for the next request on an idle keep-alive connection.

    Returns False once the server is stopping or the idle timeout passes.
    """
    lifecycle = instance.lifecycle
    deadline = None
    if instance.socket_timeout:
        deadline = time.monotonic() + instance.socket_timeout
    while lifecycle is None or not lifecycle.should_stop():
        readable, _, _ = select.select([client_socket], [], [], IDLE_POLL_SECONDS)
        if readable:
            return True
        if deadline is not None and time.monotonic() >= deadline:
            return False
    return False


def _serve_one(
    client_socket: socket.socket,
    buffer: bytes,
    instance: ServerInstance,
    client: str,
) -> tuple[bool, bytes]:
    """Answer the next request; return whether the connection stays open."""
    try:
        request, buffer = receive_request(client_socket, buffer)
    except ChunkError as error:
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={
                "event": "malformed_request",
                "client": client,
                "error_kind": error.kind.value,
            },
        )
        send_response(client_socket, error_response(error, None, None))
        return False, b""

    if request is None:
        WORKER_LOGGER.debug(
            "Client finished",
            extra={"event": "client_disconnected", "client": client},
        )
        return False, b""

    response = dispatch_request(request, instance)
    send_response(client_socket, response)
    WORKER_LOGGER.debug(
        "Request processing complete",
        extra={
            "event": "request_complete",
            "client": client,
            "method": request.method,
            "status_code": response.status_line,
        },
    )
    return not response.close_connection, buffer


def _drain_unread(client_socket: socket.socket) -> None:
    """Discard unread request bytes so close() does not reset the connection."""
    client_socket.settimeout(LINGER_SECONDS)
    drained = 0
    while drained < LINGER_MAX_BYTES:
        data = client_socket.recv(64 * 1024)
        if not data:
            return
        drained += len(data)


def _close_client(client_socket: socket.socket, client: str) -> None:
    try:
        client_socket.shutdown(socket.SHUT_WR)
        _drain_unread(client_socket)
    except OSError:
        pass
    client_socket.close()
    WORKER_LOGGER.debug(
        "Socket closed", extra={"event": "socket_closed", "client": client}
    )


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    instance: ServerInstance,
) -> None:
    """Serve one connection, one request id per request, until it closes."""
    client = f"{client_address[0]}:{client_address[1]}"
    lifecycle = instance.lifecycle
    worker = threading.current_thread()
    if lifecycle is not None:
        lifecycle.register_worker(worker)
    if instance.socket_timeout:
        client_socket.settimeout(instance.socket_timeout)

    buffer = b""
    keep_open = True
    try:
        while keep_open:
            if not buffer and not _await_next_request(client_socket, instance):
                WORKER_LOGGER.debug(
                    "Idle connection released",
                    extra={"event": "idle_connection_closed", "client": client},
                )
                break
            with request_scope():
                keep_open, buffer = _serve_one(client_socket, buffer, instance, client)
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": client,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
    finally:
        if lifecycle is not None:
            lifecycle.cleanup_worker(worker)
        _close_client(client_socket, client)

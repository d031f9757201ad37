"""Caller-owned handle around one running chunk server."""

import logging
import socket
import threading
from typing import Any, Mapping, Optional, Union

from chunkserver.bootstrap.config import (
    PLATFORM_NAME,
    PROTOCOL_VERSION,
    ServerConfig,
    config_from_options,
)
from chunkserver.bootstrap.port_allocator import (
    BindFunction,
    RandomPortSelector,
    allocate_listener,
    create_listening_socket,
)
from chunkserver.crypto.codec import NO_ENCRYPTION, ChunkCodec
from chunkserver.domain.correlation_id import CorrelationLoggerAdapter
from chunkserver.domain.errors import BindFailure
from chunkserver.lifecycle.state import ServerLifecycle
from chunkserver.security.auth import generate_auth_token
from chunkserver.security.cors import CorsPolicy
from chunkserver.transport.accept_loop import run_accept_loop
from chunkserver.transport.context import ServerInstance

HANDLE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("chunk_server.handle"), {})


class ServerHandle:
    """What the embedding application gets back from start_server.

    A handle whose port could not be bound is still returned; it reports
    ``ready`` as False and an empty ``base_url``.
    """

    def __init__(
        self,
        config: ServerConfig,
        instance: Optional[ServerInstance] = None,
        listener: Optional[socket.socket] = None,
    ) -> None:
        self._config = config
        self._instance = instance
        self._listener = listener
        self._thread: Optional[threading.Thread] = None
        self._stopped = instance is None
        if instance is not None and listener is not None:
            self._thread = threading.Thread(
                target=run_accept_loop,
                args=(listener, instance),
                name=f"chunk-accept-{instance.port}",
                daemon=True,
            )
            self._thread.start()

    @property
    def running(self) -> bool:
        return self._instance is not None and not self._stopped

    @property
    def port(self) -> int:
        return self._instance.port if self._instance is not None else 0

    @property
    def auth_token(self) -> str:
        return self._instance.auth_token if self._instance is not None else ""

    @property
    def chunk_size(self) -> int:
        return self._instance.chunk_size if self._instance is not None else 0

    @property
    def encryption_type(self) -> str:
        if self._instance is None:
            return NO_ENCRYPTION
        return self._instance.codec.encryption_type

    @property
    def ready(self) -> bool:
        return self._instance is not None and self._instance.codec.ready

    @property
    def base_url(self) -> str:
        if self._instance is None:
            return ""
        return f"http://localhost:{self._instance.port}"

    def info(self) -> dict[str, Any]:
        """Return the start-up result in the camelCase shape the web client expects."""
        return {
            "version": PROTOCOL_VERSION,
            "platform": PLATFORM_NAME,
            "baseUrl": self.base_url,
            "authToken": self.auth_token,
            "chunkSize": self.chunk_size,
            "encryptionType": self.encryption_type,
            "ready": self.ready,
        }

    def stop(self) -> None:
        """Release the listening socket; calling it again does nothing."""
        if self._stopped or self._instance is None:
            return
        self._stopped = True
        lifecycle = self._instance.lifecycle
        if lifecycle is not None and not lifecycle.request_stop():
            return
        if self._thread is not None:
            self._thread.join()
        elif self._listener is not None:
            self._listener.close()
        if lifecycle is not None:
            lifecycle.wait_for_workers(self._config.shutdown_grace_seconds)
        HANDLE_LOGGER.info(
            "Server stopped",
            extra={"event": "server_stopped", "port": self._instance.port},
        )

    def __enter__(self) -> "ServerHandle":
        return self

    def __exit__(self, *_exc_info) -> None:
        self.stop()


def start_server(
    config: Union[ServerConfig, Mapping[str, Any]],
    selector: Optional[RandomPortSelector] = None,
    bind: BindFunction = create_listening_socket,
) -> ServerHandle:
    """Bind a port, configure encryption and start serving in the background.

    Accepts either a ServerConfig or the embedding app's startup mapping.
    Bind and key problems never raise; they show up as ``ready=False``.
    """
    if not isinstance(config, ServerConfig):
        config = config_from_options(config)

    try:
        listener = allocate_listener(config, selector, bind)
    except BindFailure:
        HANDLE_LOGGER.error(
            "Server not started",
            extra={"event": "server_not_ready", "ready": False},
        )
        return ServerHandle(config)

    codec = ChunkCodec()
    codec.configure(config.encryption_enabled, config.encryption_key)

    instance = ServerInstance(
        port=listener.getsockname()[1],
        auth_token=generate_auth_token(),
        chunk_size=config.chunk_size,
        max_accepted_body_size=config.max_accepted_body_size,
        codec=codec,
        cors_policy=CorsPolicy(),
        sandbox_root=config.sandbox_root,
        socket_timeout=config.socket_timeout,
        lifecycle=ServerLifecycle(),
    )
    handle = ServerHandle(config, instance, listener)
    HANDLE_LOGGER.info(
        "Server started",
        extra={
            "event": "server_started",
            "host": config.host,
            "port": instance.port,
            "chunk_size": config.chunk_size,
            "encryption": codec.encryption_type,
            "ready": handle.ready,
        },
    )
    return handle

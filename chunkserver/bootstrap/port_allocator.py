"""Listening socket creation with bounded port retry."""

import logging
import random
import socket
from typing import Callable, Optional

from chunkserver.bootstrap.config import ServerConfig
from chunkserver.domain.correlation_id import CorrelationLoggerAdapter
from chunkserver.domain.errors import BindFailure

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("chunk_server.socket"), {})

ACCEPT_POLL_SECONDS = 0.5

BindFunction = Callable[[str, int], socket.socket]


class RandomPortSelector:  # pylint: disable=too-few-public-methods
    """Draws candidate ports uniformly from ``[low, high)``.

    Pass a seeded ``random.Random`` to make the sequence reproducible.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.SystemRandom()

    def draw(self, low: int, high: int) -> int:
        """Return one candidate port; a degenerate range always yields low."""
        if high <= low:
            return low
        return self._rng.randrange(low, high)


def create_listening_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on host:port, raising OSError when the port is taken."""
    server_socket = socket.create_server((host, port))
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket


def _try_bind(bind: BindFunction, host: str, port: int, attempt: int):
    try:
        return bind(host, port)
    except (OSError, OverflowError) as error:
        SOCKET_LOGGER.warning(
            "Port bind failed",
            extra={
                "event": "port_bind_failed",
                "host": host,
                "port": port,
                "attempt": attempt,
                "error_type": type(error).__name__,
            },
        )
        return None


def allocate_listener(
    config: ServerConfig,
    selector: Optional[RandomPortSelector] = None,
    bind: BindFunction = create_listening_socket,
) -> socket.socket:
    """Acquire a listening socket for the configured port preferences.

    A fixed port gets exactly one attempt. When it fails and retries are
    enabled the search falls through to up to ``max_bind_retries`` random
    draws from the configured range; previously failed ports may be drawn
    again. Raises BindFailure once every attempt has failed.
    """
    selector = selector or RandomPortSelector()
    attempt = 0

    if config.fixed_port:
        attempt += 1
        listener = _try_bind(bind, config.host, config.fixed_port, attempt)
        if listener is not None:
            return listener
        if config.max_bind_retries <= 0:
            raise BindFailure(f"fixed port {config.fixed_port} unavailable")

    for _ in range(max(0, config.max_bind_retries)):
        attempt += 1
        port = selector.draw(config.port_range_min, config.port_range_max)
        listener = _try_bind(bind, config.host, port, attempt)
        if listener is not None:
            return listener

    SOCKET_LOGGER.error(
        "No port could be bound",
        extra={
            "event": "port_allocation_exhausted",
            "host": config.host,
            "retries": config.max_bind_retries,
        },
    )
    raise BindFailure(f"no port bound after {attempt} attempts")

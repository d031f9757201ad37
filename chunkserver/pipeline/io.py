"""HTTP input/output over a client socket."""

import logging
import socket
import urllib.parse
from typing import Optional, Tuple

from chunkserver.bootstrap.config import HEADER_DELIMITER, MAX_HEADER_BYTES
from chunkserver.domain.correlation_id import CorrelationLoggerAdapter, current_request_id
from chunkserver.domain.errors import ChunkError, ErrorKind
from chunkserver.domain.http_types import HttpRequest, HttpResponse
from chunkserver.pipeline.validation import declared_content_length

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("chunk_server.io"), {})

RECV_SIZE = 64 * 1024


class SocketBodyReader:
    """Reads exactly the declared request body, never past it.

    Bytes that arrived together with the headers are served first; the rest is
    pulled from the socket on demand so large bodies are never held whole.
    """

    def __init__(
        self, client_socket: socket.socket, prefix: bytes, length: int, framed: bool
    ) -> None:
        self._socket = client_socket
        self._prefix = prefix
        self.remaining = length
        self.framed = framed

    def read(self, size: int) -> bytes:
        if self.remaining <= 0 or size <= 0:
            return b""
        wanted = min(size, self.remaining)
        if self._prefix:
            data, self._prefix = self._prefix[:wanted], self._prefix[wanted:]
        else:
            data = self._socket.recv(wanted)
            if not data:
                raise ConnectionError("Client closed connection mid-body")
        self.remaining -= len(data)
        return data

    @property
    def exhausted(self) -> bool:
        return self.framed and self.remaining == 0


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        name, separator, value = line.partition(":")
        if separator:
            parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str, dict[str, list[str]]]:
    """Parse the method, decoded path and query parameters from the request line."""
    try:
        method, target, _ = request_line.split(" ", 2)
    except ValueError as exc:
        raise ChunkError(ErrorKind.BAD_REQUEST, "Invalid request line") from exc

    parsed_target = urllib.parse.urlsplit(target)
    path = urllib.parse.unquote(parsed_target.path)
    query = urllib.parse.parse_qs(parsed_target.query, keep_blank_values=True)
    return method, path, query


def receive_request(
    client_socket: socket.socket, buffer: bytes
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read the request head; the body is left on the socket for the handler.

    Returns the request and the bytes already received beyond its body.
    """
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > MAX_HEADER_BYTES:
            raise ChunkError(ErrorKind.BAD_REQUEST, "Request head too large")
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        buffer += chunk

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    try:
        header_lines = header_block.decode("latin-1").split("\r\n")
    except UnicodeDecodeError as exc:
        raise ChunkError(ErrorKind.BAD_REQUEST, "Undecodable request head") from exc
    method, path, query = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    framed = "transfer-encoding" not in headers
    try:
        content_length = declared_content_length(headers) or 0
    except ChunkError:
        content_length = 0
        framed = False

    prefix, leftover = remainder[:content_length], remainder[content_length:]
    body = SocketBodyReader(client_socket, prefix, content_length, framed)
    IO_LOGGER.debug(
        "Parsed request head",
        extra={"method": method, "path": path, "content_length": content_length},
    )
    return HttpRequest(method, path, headers, query, body), leftover


def send_response(client_socket: socket.socket, response: HttpResponse) -> None:
    """Serialize and send the HTTP response over the socket."""
    headers = dict(response.headers)

    request_id = current_request_id()
    if request_id:
        headers["X-Request-ID"] = request_id

    headers["Content-Length"] = str(len(response.body))
    if response.close_connection:
        headers["Connection"] = "close"
    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    header_block = "\r\n".join(header_lines).encode("latin-1") + b"\r\n\r\n"
    client_socket.sendall(header_block + response.body)
    IO_LOGGER.debug(
        "Sent response",
        extra={"status_code": response.status_line, "bytes_out": len(response.body)},
    )

"""Chunk read (GET) and write (PUT) handlers."""

import logging

from chunkserver.domain.correlation_id import CorrelationLoggerAdapter
from chunkserver.domain.errors import ChunkError, ErrorKind
from chunkserver.domain.http_types import HttpRequest, HttpResponse
from chunkserver.domain.response_builders import (
    no_content_response,
    octet_stream_response,
)
from chunkserver.domain.sandbox import resolve_chunk_path
from chunkserver.handlers.chunk_io import (
    append_bytes,
    append_stream,
    read_body,
    read_range,
)
from chunkserver.pipeline.validation import parse_range_params, require_content_length
from chunkserver.transport.context import ServerInstance

CHUNK_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("chunk_server.handlers.chunk"), {}
)


def handle_put(request: HttpRequest, instance: ServerInstance) -> HttpResponse:
    """Append the request body (decrypted when enabled) to the target file."""
    target = resolve_chunk_path(request.path, instance.sandbox_root)
    content_length = require_content_length(
        request.headers, instance.max_accepted_body_size
    )
    if request.body is None or content_length == 0:
        raise ChunkError(ErrorKind.BAD_REQUEST, "request has no chunk bytes")

    codec = instance.codec
    if codec.enabled:
        plaintext = codec.decrypt(read_body(request.body, content_length))
        if not plaintext:
            raise ChunkError(ErrorKind.DECRYPT_FAILURE, "frame carries no chunk bytes")
        written = append_bytes(target, plaintext)
    else:
        written = append_stream(target, request.body, content_length)

    CHUNK_LOGGER.info(
        "Chunk appended",
        extra={
            "event": "chunk_write_complete",
            "path": target.as_posix(),
            "bytes_in": content_length,
            "bytes_out": written,
        },
    )
    return no_content_response(request, instance.cors_policy)


def handle_get(request: HttpRequest, instance: ServerInstance) -> HttpResponse:
    """Serve ``l`` bytes of the target file from offset ``o``."""
    target = resolve_chunk_path(request.path, instance.sandbox_root)
    offset, length = parse_range_params(request.query, instance.chunk_size)

    plaintext = read_range(target, offset, length)
    payload = instance.codec.encrypt(plaintext)

    if CHUNK_LOGGER.logger.isEnabledFor(logging.DEBUG):
        CHUNK_LOGGER.debug(
            "Chunk read",
            extra={
                "event": "chunk_read_complete",
                "path": target.as_posix(),
                "offset": offset,
                "length": length,
                "bytes_out": len(payload),
            },
        )
    return octet_stream_response(payload, request, instance.cors_policy)

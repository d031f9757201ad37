"""File range reads and appends."""

import logging
from pathlib import Path
from typing import Union

from chunkserver.bootstrap.config import STREAM_BUFFER_SIZE
from chunkserver.domain.correlation_id import CorrelationLoggerAdapter
from chunkserver.domain.errors import ChunkError, ErrorKind
from chunkserver.domain.http_types import BodySource

CHUNK_IO_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("chunk_server.handlers.chunk_io"), {}
)

PathLike = Union[str, Path]


def read_range(path: PathLike, offset: int, length: int) -> bytes:
    """Read up to length bytes starting at offset; fewer near end of file."""
    try:
        with open(path, "rb") as file_handle:
            file_handle.seek(offset)
            return file_handle.read(length)
    except (OSError, OverflowError, ValueError) as error:
        raise ChunkError(ErrorKind.IO_FAILURE, type(error).__name__) from error


def read_file_chunk(path: PathLike, offset: int, length: int) -> bytes:
    """Read a raw, never encrypted, chunk without going through HTTP.

    Returns b"" on any failure.
    """
    try:
        return read_range(path, offset, length)
    except ChunkError:
        CHUNK_IO_LOGGER.warning(
            "Local chunk read failed",
            extra={"event": "chunk_io_failed", "offset": offset, "length": length},
        )
        return b""


def append_bytes(path: PathLike, payload: bytes) -> int:
    """Append payload to the file, creating it when missing."""
    try:
        with open(path, "ab") as file_handle:
            file_handle.write(payload)
    except OSError as error:
        raise ChunkError(ErrorKind.IO_FAILURE, type(error).__name__) from error
    return len(payload)


def read_body(body: BodySource, length: int) -> bytes:
    """Buffer a whole request body, needed before an AEAD frame can be opened."""
    parts = []
    received = 0
    try:
        while received < length:
            data = body.read(min(STREAM_BUFFER_SIZE, length - received))
            if not data:
                break
            parts.append(data)
            received += len(data)
    except OSError as error:
        raise ChunkError(ErrorKind.IO_FAILURE, type(error).__name__) from error
    if received < length:
        raise ChunkError(ErrorKind.IO_FAILURE, "request body ended early")
    return b"".join(parts)


def append_stream(path: PathLike, body: BodySource, length: int) -> int:
    """Copy length body bytes onto the end of the file through a fixed buffer."""
    written = 0
    try:
        with open(path, "ab") as file_handle:
            while written < length:
                data = body.read(min(STREAM_BUFFER_SIZE, length - written))
                if not data:
                    break
                file_handle.write(data)
                written += len(data)
    except OSError as error:
        raise ChunkError(ErrorKind.IO_FAILURE, type(error).__name__) from error
    if written < length:
        raise ChunkError(ErrorKind.IO_FAILURE, "request body ended early")
    return written

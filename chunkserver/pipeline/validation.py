"""Request validation for chunk reads and writes."""

from typing import Optional

from chunkserver.domain.errors import ChunkError, ErrorKind


def _parse_non_negative(raw: str, name: str) -> int:
    # int() accepts "+1", " 1" and "1_0"; only plain digit strings are valid here
    if not raw.isdigit() or not raw.isascii():
        raise ChunkError(ErrorKind.BAD_REQUEST, f"{name} is not a non-negative integer")
    return int(raw)


def declared_content_length(headers: dict[str, str]) -> Optional[int]:
    """Return the Content-Length header as an int, or None when absent."""
    header_value = headers.get("content-length")
    if header_value is None:
        return None
    return _parse_non_negative(header_value.strip(), "Content-Length")


def require_content_length(headers: dict[str, str], max_body_bytes: int) -> int:
    """Validate the Content-Length of a chunk write against the size limit."""
    content_length = declared_content_length(headers)
    if content_length is None:
        raise ChunkError(ErrorKind.BAD_REQUEST, "Missing Content-Length")
    if content_length > max_body_bytes:
        raise ChunkError(
            ErrorKind.OVERSIZE_REQUEST,
            f"Content-Length {content_length} exceeds {max_body_bytes}",
        )
    return content_length


def parse_range_params(
    query: dict[str, list[str]], max_length: Optional[int] = None
) -> tuple[int, int]:
    """Extract the single ``o`` (offset) and ``l`` (length) query parameters."""
    offsets = query.get("o", [])
    lengths = query.get("l", [])
    if len(offsets) != 1 or len(lengths) != 1:
        raise ChunkError(
            ErrorKind.BAD_REQUEST, "exactly one o and one l parameter are required"
        )
    offset = _parse_non_negative(offsets[0], "o")
    length = _parse_non_negative(lengths[0], "l")
    if length == 0:
        raise ChunkError(ErrorKind.BAD_REQUEST, "l must be positive")
    if max_length is not None and length > max_length:
        raise ChunkError(
            ErrorKind.OVERSIZE_REQUEST, f"length {length} exceeds {max_length}"
        )
    return offset, length

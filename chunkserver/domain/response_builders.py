"""Pure HTTP response builders."""

from http import HTTPStatus
from typing import Optional

from chunkserver.domain.errors import ChunkError, status_for
from chunkserver.domain.http_types import HttpRequest, HttpResponse, should_close
from chunkserver.security.cors import CorsPolicy, apply_cors_headers


def status_line(status: int) -> str:
    """Render the HTTP/1.1 status line for a numeric status code."""
    return f"HTTP/1.1 {status} {HTTPStatus(status).phrase}"


def empty_response(
    status: int,
    request: Optional[HttpRequest],
    cors_policy: Optional[CorsPolicy],
    close_connection: bool = False,
) -> HttpResponse:
    """Return a body-less response carrying CORS headers when an Origin is sent.

    The serializer always writes an explicit ``Content-Length: 0`` for these.
    """
    headers: dict[str, str] = {}
    if request is None:
        return HttpResponse(status_line(status), headers, b"", True)
    apply_cors_headers(headers, request, cors_policy)
    return HttpResponse(
        status_line(status),
        headers,
        b"",
        close_connection or should_close(request.headers),
    )


def no_content_response(
    request: HttpRequest, cors_policy: Optional[CorsPolicy]
) -> HttpResponse:
    """Return the 204 sent after a chunk was appended."""
    return empty_response(204, request, cors_policy)


def octet_stream_response(
    payload: bytes, request: HttpRequest, cors_policy: Optional[CorsPolicy]
) -> HttpResponse:
    """Return a 200 response carrying raw chunk bytes."""
    headers = {"Content-Type": "application/octet-stream"}
    apply_cors_headers(headers, request, cors_policy)
    return HttpResponse(
        status_line(200), headers, payload, should_close(request.headers)
    )


def error_response(
    error: ChunkError,
    request: Optional[HttpRequest],
    cors_policy: Optional[CorsPolicy],
    close_connection: bool = False,
) -> HttpResponse:
    """Translate a ChunkError into its empty status response."""
    return empty_response(
        status_for(error.kind), request, cors_policy, close_connection
    )


def method_not_allowed_response(
    request: HttpRequest, cors_policy: Optional[CorsPolicy], allowed_methods
) -> HttpResponse:
    """Produce a 405 response enumerating the supported HTTP methods."""
    response = empty_response(405, request, cors_policy)
    response.headers["Allow"] = ", ".join(sorted(allowed_methods))
    return response

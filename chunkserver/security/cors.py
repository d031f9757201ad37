"""CORS (Cross-Origin Resource Sharing) utilities for the chunk server."""

from dataclasses import dataclass, field
from typing import Optional

from chunkserver.bootstrap.config import CORS_ALLOWED_METHODS
from chunkserver.domain.http_types import HttpRequest, HttpResponse, should_close


@dataclass
class CorsPolicy:
    """CORS settings; the caller's origin and requested headers are mirrored."""

    allowed_methods: list[str] = field(
        default_factory=lambda: list(CORS_ALLOWED_METHODS)
    )


def apply_cors_headers(
    headers: dict[str, str],
    request: HttpRequest,
    cors_policy: Optional[CorsPolicy],
) -> None:
    """Mirror the request origin into the response when an Origin is present."""
    if cors_policy is None:
        return

    origin = request.headers.get("origin")
    if not origin:
        return

    headers["Access-Control-Allow-Origin"] = origin
    headers.setdefault("Vary", "Origin")
    headers["Access-Control-Allow-Methods"] = ", ".join(cors_policy.allowed_methods)

    requested_headers = request.headers.get("access-control-request-headers")
    if requested_headers:
        headers["Access-Control-Allow-Headers"] = requested_headers


def preflight_response(
    request: HttpRequest, cors_policy: Optional[CorsPolicy]
) -> HttpResponse:
    """Answer any OPTIONS request with 200 and the mirrored CORS headers.

    The authorization header is not checked here.
    """
    headers: dict[str, str] = {}
    apply_cors_headers(headers, request, cors_policy)
    return HttpResponse(
        "HTTP/1.1 200 OK",
        headers,
        b"",
        should_close(request.headers),
    )

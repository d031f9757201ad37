"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol


class RequestMethod(Enum):
    """Methods the chunk server dispatches on; everything else is UNSUPPORTED."""

    GET = "GET"
    PUT = "PUT"
    OPTIONS = "OPTIONS"
    UNSUPPORTED = "UNSUPPORTED"

    @classmethod
    def from_token(cls, token: str) -> "RequestMethod":
        """Map a request-line method token onto the dispatch variants."""
        try:
            method = cls(token)
        except ValueError:
            return cls.UNSUPPORTED
        return method


class BodySource(Protocol):  # pylint: disable=too-few-public-methods
    """Anything a request body can be read from incrementally."""

    def read(self, size: int) -> bytes:
        """Return up to size bytes, or b"" once the body is exhausted."""

    @property
    def exhausted(self) -> bool:
        """True once every declared body byte has been consumed."""


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request whose body has not been read yet."""

    method: str
    path: str
    headers: dict[str, str]
    query: dict[str, list[str]] = field(default_factory=dict)
    body: Optional[BodySource] = None

    @property
    def dispatch_method(self) -> RequestMethod:
        return RequestMethod.from_token(self.method)


@dataclass
class HttpResponse:
    """Represents an HTTP response to be sent to a client."""

    status_line: str
    headers: dict[str, str]
    body: bytes
    close_connection: bool


def should_close(headers: dict[str, str]) -> bool:
    """Determine whether the connection should be closed after responding."""
    return headers.get("connection", "").lower() == "close"

"""Error taxonomy shared by the port allocator, codec and request handlers."""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Every way a start-up step or a chunk request can fail."""

    BIND_FAILURE = "bind_failure"
    AUTH_FAILURE = "auth_failure"
    BAD_REQUEST = "bad_request"
    OVERSIZE_REQUEST = "oversize_request"
    ENCRYPTION_CONFIG_FAILURE = "encryption_config_failure"
    DECRYPT_FAILURE = "decrypt_failure"
    IO_FAILURE = "io_failure"
    FORBIDDEN_PATH = "forbidden_path"


_STATUS_BY_KIND = {
    ErrorKind.AUTH_FAILURE: 401,
    ErrorKind.FORBIDDEN_PATH: 403,
}


class ChunkError(Exception):
    """Raised with an explicit kind whenever an operation cannot complete."""

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None) -> None:
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail


class BindFailure(ChunkError):
    """Raised when no listening port could be acquired."""

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(ErrorKind.BIND_FAILURE, detail)


class DecryptFailure(ChunkError):
    """Raised when a frame is truncated or fails authentication."""

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(ErrorKind.DECRYPT_FAILURE, detail)


def status_for(kind: ErrorKind) -> int:
    """Return the HTTP status code a per-request failure is reported with."""
    return _STATUS_BY_KIND.get(kind, 400)

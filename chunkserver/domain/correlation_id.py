"""Request ids shared by log records and the X-Request-ID response header."""

import contextlib
import contextvars
import logging
import uuid
from typing import Any, Iterator, MutableMapping, Optional

COMPONENT_PREFIX = "chunk_server."
NO_REQUEST = "-"

_current_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "chunk_request_id", default=None
)


def new_request_id() -> str:
    return str(uuid.uuid4())


def current_request_id() -> Optional[str]:
    """Id of the request being served in this context, if any."""
    return _current_request_id.get()


@contextlib.contextmanager
def request_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind a request id for one request/response exchange."""
    token = _current_request_id.set(request_id or new_request_id())
    try:
        yield _current_request_id.get()
    finally:
        _current_request_id.reset(token)


def component_name(logger_name: str) -> str:
    if logger_name.startswith(COMPONENT_PREFIX):
        return logger_name[len(COMPONENT_PREFIX) :]
    return logger_name


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Stamps each record with the current request id and its component."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        request_id = current_request_id()
        extra["correlation_id"] = request_id if request_id is not None else NO_REQUEST
        extra["component"] = component_name(self.logger.name)
        kwargs["extra"] = extra
        return msg, kwargs

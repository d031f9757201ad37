"""Authorization gate and method dispatch."""

import logging

from chunkserver.domain.correlation_id import CorrelationLoggerAdapter
from chunkserver.domain.errors import ChunkError, ErrorKind
from chunkserver.domain.http_types import HttpRequest, HttpResponse, RequestMethod
from chunkserver.domain.response_builders import (
    error_response,
    method_not_allowed_response,
)
from chunkserver.handlers.chunk_handler import handle_get, handle_put
from chunkserver.security.auth import is_authorized
from chunkserver.security.cors import preflight_response
from chunkserver.transport.context import ServerInstance

DISPATCH_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("chunk_server.pipeline.dispatch"), {}
)

ALLOWED_METHODS = {"GET", "PUT", "OPTIONS"}


def _unsafe_to_reuse(request: HttpRequest) -> bool:
    body = request.body
    return body is not None and not body.exhausted


def dispatch_request(request: HttpRequest, instance: ServerInstance) -> HttpResponse:
    """Run one request through preflight, authorization and its handler.

    This is the handler boundary: every ChunkError raised below is turned
    into its status response here.
    """
    method = request.dispatch_method
    if method is RequestMethod.OPTIONS:
        response = preflight_response(request, instance.cors_policy)
        response.close_connection = response.close_connection or _unsafe_to_reuse(
            request
        )
        return response

    if not is_authorized(request.headers.get("authorization"), instance.auth_token):
        DISPATCH_LOGGER.warning(
            "Request rejected without a valid token",
            extra={
                "event": "request_unauthorized",
                "method": request.method,
                "status_code": 401,
            },
        )
        return error_response(
            ChunkError(ErrorKind.AUTH_FAILURE),
            request,
            instance.cors_policy,
            close_connection=_unsafe_to_reuse(request),
        )

    try:
        match method:
            case RequestMethod.GET:
                response = handle_get(request, instance)
            case RequestMethod.PUT:
                response = handle_put(request, instance)
            case _:
                response = method_not_allowed_response(
                    request, instance.cors_policy, ALLOWED_METHODS
                )
    except ChunkError as error:
        DISPATCH_LOGGER.warning(
            "Chunk request failed",
            extra={
                "event": "chunk_request_failed",
                "method": request.method,
                "error_kind": error.kind.value,
            },
        )
        return error_response(
            error,
            request,
            instance.cors_policy,
            close_connection=_unsafe_to_reuse(request),
        )

    if _unsafe_to_reuse(request):
        response.close_connection = True
    return response

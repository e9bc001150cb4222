"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Translates between raw bytes on the socket and the objects handlers see.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       bytes → HTTPRequest (method, path, raw_path, ...)  │
    │ response.py      HTTPResponse with a fixed or streamed body         │
    │ router.py        exact routes and prefix mounts → handler           │
    │ status_codes.py  HTTPStatus with reason phrases                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
HTTP MESSAGE FORMAT (RFC 7230)
=============================================================================

    REQUEST:                          RESPONSE:
    ─────────                         ──────────
    GET /fs/ HTTP/1.1\\r\\n              HTTP/1.1 200 OK\\r\\n
    Host: localhost\\r\\n                Transfer-Encoding: chunked\\r\\n
    \\r\\n                              \\r\\n
                                      [body]

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    DEFAULT_CHUNK_SIZE,
    NOT_FOUND_PAGE,
    not_found,           # 404 constant page
    method_not_allowed,  # 405 with Allow
    error_response,      # JSON error, closes the connection
)
from .router import Router, Route, Mount
from .status_codes import HTTPStatus

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    "HTTPResponse",
    "ResponseBuilder",
    "DEFAULT_CHUNK_SIZE",
    "NOT_FOUND_PAGE",
    "not_found",
    "method_not_allowed",
    "error_response",

    "Router",
    "Route",
    "Mount",

    "HTTPStatus",
]

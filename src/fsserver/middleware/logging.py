"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

Writes one access-log line per request on the ``fsserver.access`` logger.

    text:  127.0.0.1 - - [18/Oct/2026:10:02:11 +0000] "GET /fs/a.txt" 200 5120 0.41ms
    json:  {"request_id": "1f0c2a9e", "method": "GET", "path": "/fs/a.txt", ...}

The line is written when the handler returns, before a streamed body has
been pulled. The logged length is therefore the declared one: the file size
for files, "-" (null in JSON) for directory listings whose size is unknown
up front.

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional
from dataclasses import dataclass

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


# Configure separately from the rest, e.g. to send access lines to a file:
#   logging.getLogger("fsserver.access").addHandler(file_handler)
logger = logging.getLogger("fsserver.access")


@dataclass
class RequestLog:
    """
    Structured log entry for one request.

    content_length is None when the body is streamed with no known size.
    """

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: Optional[int]
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "query": self.query,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-like common log line with the handler time appended."""
        length = "-" if self.content_length is None else str(self.content_length)
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{length} {self.duration_ms:.2f}ms'
        )


def response_length(response: HTTPResponse) -> Optional[int]:
    """Declared body length of ``response``, None if not known yet."""
    if response.is_streamed:
        return response.content_length
    return len(response.body)


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Add it first so it sees every request, including ones answered by the
    router's 404/405 fallbacks:

        pipeline.add(LoggingMiddleware(log_format="json"))

    Args:
        log_format: "text" or "json".
        include_request_id: Put the generated id in an X-Request-ID header.
        log_level: Level the access lines are logged at.
        skip_paths: Exact paths not to log.
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if request.path in self.skip_paths:
            return response

        query = "&".join(
            f"{name}={value}"
            for name, values in request.query_params.items()
            for value in values
        )
        log_entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.raw_path,
            query=query,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=response_length(response),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(self.log_level, log_entry.to_text())

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        return response

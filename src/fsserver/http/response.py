"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses whose body is either a fixed buffer or a
producer the runtime pulls from.

=============================================================================
TWO KINDS OF BODY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       RESPONSE BODIES                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   FIXED                              STREAMED                       │
    │   ─────                              ────────                       │
    │   body=b"<html>..."                  producer=FileProducer(...)     │
    │   Content-Length: len(body)          content_length=size or None    │
    │   sent in one sendall()              chunk_size=max bytes per pull  │
    │                                                                      │
    │   404 page, redirects,               regular files,                 │
    │   runtime errors                     directory listings             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

When the length of a streamed body is unknown (directory listings), the
runtime frames it with Transfer-Encoding: chunked for HTTP/1.1 clients and
by closing the connection for HTTP/1.0 clients.

Ownership of an attached producer passes to whoever transmits the
response. That party must call producer.release() exactly once.

=============================================================================
BUILDER PATTERN
=============================================================================

    response = (ResponseBuilder()
        .status(HTTPStatus.OK)
        .content_type("text/html; charset=utf-8")
        .stream(producer, length=None, chunk_size=131072)
        .build())

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union
import json
import mmap

from .status_codes import HTTPStatus
from ..fs.producers import Producer


# Default maximum chunk size handed to producers: 32 memory pages.
DEFAULT_CHUNK_SIZE = 32 * mmap.PAGESIZE

NOT_FOUND_PAGE = (
    "<html>"
    "<head>"
    "<title>File not found</title>"
    "</head>"
    "<body>File not found</body>"
    "</html>"
)


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Use ResponseBuilder for a more convenient way to construct responses.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        Handler returns        head_bytes()          Runtime sends
        HTTPResponse  ─────►   status line   ─────►  head, then body:
            │                  + headers             fixed  → body bytes
            │                                        stream → pull() loop
        HTTPResponse(                                         release()
          status=200,
          producer=...,
          content_length=1234,
        )

    =========================================================================
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    # Streamed body (takes precedence over `body` when set)
    producer: Optional[Producer] = None
    content_length: Optional[int] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE

    @property
    def status_line(self) -> str:
        """
        Get the HTTP status line.

        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 200 OK"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def is_streamed(self) -> bool:
        """True when the body comes from a producer."""
        return self.producer is not None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """
        Set a response header.

        Returns self for method chaining:
            response.set_header("X-Custom", "value").set_header("X-Other", "val")
        """
        self.headers[name] = value
        return self

    def head_bytes(self, server_name: str = "fsserver/1.0", chunked: bool = False) -> bytes:
        """
        Serialize the status line and headers.

        =====================================================================
        BODY FRAMING
        =====================================================================

            fixed body                  → Content-Length: len(body)
            stream, known length        → Content-Length: content_length
            stream, unknown, chunked    → Transfer-Encoding: chunked
            stream, unknown, otherwise  → no length header; the runtime
                                          closes the connection at the end

        =====================================================================

        Args:
            server_name: Server identifier for the Server header.
            chunked: Frame an unknown-length stream with chunked encoding.

        Returns:
            Header block terminated by the empty line.
        """
        response_headers = dict(self.headers)

        if self.is_streamed:
            if self.content_length is not None:
                response_headers.setdefault("Content-Length", str(self.content_length))
            elif chunked:
                response_headers["Transfer-Encoding"] = "chunked"
        elif "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("latin-1", errors="replace") + b"\r\n"

    def to_bytes(self, server_name: str = "fsserver/1.0") -> bytes:
        """
        Serialize a fixed-body response, head and body, for socket.sendall().

        Raises:
            ValueError: If the body is streamed; use head_bytes() and let
                        the runtime drive the producer.
        """
        if self.is_streamed:
            raise ValueError("Streamed responses cannot be serialized in one piece")
        return self.head_bytes(server_name) + self.body


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

    Each method returns ``self`` so calls can be chained; build() returns the
    HTTPResponse.

        # Fixed HTML page
        response = ResponseBuilder().status(HTTPStatus.NOT_FOUND).html(page).build()

        # Permanent redirect
        response = ResponseBuilder().redirect("/fs/docs/", permanent=True).build()

        # Streamed file
        response = (ResponseBuilder()
            .stream(producer, length=producer.size, chunk_size=65536)
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._producer: Optional[Producer] = None
        self._content_length: Optional[int] = None
        self._chunk_size = DEFAULT_CHUNK_SIZE

    # =========================================================================
    # STATUS & HEADERS
    # =========================================================================

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        """Set the HTTP status code."""
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        """Add a single response header."""
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        """Add multiple headers at once."""
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        """Set the Content-Type header."""
        return self.header("Content-Type", content_type)

    # =========================================================================
    # BODY METHODS
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set a fixed body (strings are encoded as UTF-8)."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def html(self, html: str) -> "ResponseBuilder":
        """Set an HTML body with a UTF-8 text/html Content-Type."""
        self._body = html.encode("utf-8")
        self._headers["Content-Type"] = "text/html; charset=utf-8"
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Set a JSON body.

        ensure_ascii=False keeps non-ASCII text readable instead of
        \\u-escaping it.
        """
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def stream(
        self,
        producer: Producer,
        length: Optional[int] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> "ResponseBuilder":
        """
        Attach a producer as the response body.

        Args:
            producer: Body source; released by the runtime once sent.
            length: Total body size, or None when unknown up front.
            chunk_size: Largest number of bytes asked for in one pull().

        Returns:
            Self for method chaining
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
        self._producer = producer
        self._content_length = length
        self._chunk_size = chunk_size
        return self

    # =========================================================================
    # REDIRECT METHODS
    # =========================================================================

    def redirect(self, location: str, permanent: bool = False) -> "ResponseBuilder":
        """
        Turn the response into a redirect with an empty body.

            301 Moved Permanently  - clients remember the new location
            302 Found              - temporary, original URL stays valid
        """
        self._status = HTTPStatus.MOVED_PERMANENTLY if permanent else HTTPStatus.FOUND
        self._headers["Location"] = location
        self._body = b""
        return self

    # =========================================================================
    # CONNECTION METHODS
    # =========================================================================

    def close_connection(self) -> "ResponseBuilder":
        """Set Connection: close (no further requests on this socket)."""
        self._headers["Connection"] = "close"
        return self

    # =========================================================================
    # BUILD METHODS
    # =========================================================================

    def build(self) -> HTTPResponse:
        """Build and return the HTTPResponse object."""
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
            producer=self._producer,
            content_length=self._content_length,
            chunk_size=self._chunk_size,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are always in GMT, never local time.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def not_found() -> HTTPResponse:
    """
    Create the 404 Not Found response.

    The body is always the same constant page, whatever the reason the
    path could not be served.
    """
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).html(NOT_FOUND_PAGE).build()


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """
    Create a 405 Method Not Allowed response.

    Includes the Allow header listing valid methods (RFC 7231 requirement).
    """
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .json({"error": "Method Not Allowed", "allowed": allowed_methods})
        .build())


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """
    Create a JSON error response that closes the connection.

    Used by the runtime for failures outside any handler (parse errors,
    timeouts, overload) and for unexpected handler exceptions.
    """
    return (ResponseBuilder()
        .status(status)
        .json({"error": message})
        .close_connection()
        .build())

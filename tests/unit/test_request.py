"""
Unit tests for HTTP request parsing.
"""

import pytest

from fsserver.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a listing request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/fs/docs/"
        assert request.raw_path == "/fs/docs/"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = parse_request(sample_get_request)

        assert request.host == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.is_keep_alive is True

    def test_parse_query_params(self, sample_get_request: bytes):
        """Test query parameter parsing."""
        request = parse_request(sample_get_request)

        assert request.get_query("fmt") == "json"
        assert request.get_query("sort") == "name"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_parse_head(self, sample_head_request: bytes):
        request = parse_request(sample_head_request)

        assert request.method == "HEAD"
        assert request.path == "/fs/a.txt"
        assert request.is_keep_alive is False
        assert request.supports_chunked is False

    def test_percent_decoding(self):
        """Test that path is decoded and raw_path is kept as sent."""
        raw = b"GET /fs/with%20space/caf%C3%A9 HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/fs/with space/café"
        assert request.raw_path == "/fs/with%20space/caf%C3%A9"

    def test_undecodable_bytes_survive(self):
        """Test that non-UTF-8 escapes round-trip to the same bytes."""
        raw = b"GET /fs/%FF HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path.encode("utf-8", "surrogateescape") == b"/fs/\xff"

    def test_raw_utf8_target(self):
        """Test that an unescaped UTF-8 target decodes like its escaped form."""
        raw = "GET /fs/café HTTP/1.1\r\nHost: test\r\n\r\n".encode("utf-8")
        request = parse_request(raw)

        assert request.path == "/fs/café"
        assert request.raw_path.encode("latin-1") == "/fs/café".encode("utf-8")

    def test_absolute_form_uri(self):
        """Test that an absolute URI is reduced to its path."""
        raw = b"GET http://example.com/fs/a.txt?x=1 HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/fs/a.txt"
        assert request.get_query("x") == "1"

    def test_blank_query_values_kept(self):
        request = parse_request(b"GET /fs/?fmt= HTTP/1.1\r\n\r\n")
        assert request.get_query("fmt") == ""

    def test_parse_invalid_method(self):
        """Test that invalid methods are rejected."""
        raw = b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_no_header_terminator(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")

        assert exc_info.value.status_code == 505

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        raw = b"GET / HTTP/1.1\r\n\r\n"
        request = parse_request(raw)

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_parse_path_traversal_blocked(self):
        """Test that path traversal attempts are blocked."""
        raw = b"GET /fs/../../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400
        assert "path" in str(exc_info.value).lower()

    def test_encoded_traversal_blocked(self):
        """Test that %2e%2e is caught after decoding."""
        with pytest.raises(HTTPParseError):
            parse_request(b"GET /fs/%2e%2e/secret HTTP/1.1\r\n\r\n")

    def test_dots_inside_names_allowed(self):
        """Test that only whole ".." segments are rejected."""
        request = parse_request(b"GET /fs/a..b/..c HTTP/1.1\r\n\r\n")
        assert request.path == "/fs/a..b/..c"

    def test_nul_byte_blocked(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET /fs/a%00b HTTP/1.1\r\n\r\n")

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_version_parsing(self):
        """Test HTTP/1.0 and HTTP/1.1 version handling."""
        request_10 = parse_request(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False
        assert request_10.supports_chunked is False

        request_10_ka = parse_request(
            b"GET / HTTP/1.0\r\nConnection: keep-alive\r\n\r\n"
        )
        assert request_10_ka.is_keep_alive is True

        request_11 = parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is True
        assert request_11.supports_chunked is True

    def test_content_length_handling(self):
        """Test Content-Length validation."""
        body = b"test body"
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"Content-Length: 9\r\n"
            b"\r\n"
        ) + body

        request = parse_request(raw)
        assert request.content_length == 9
        assert request.body == body

    def test_invalid_content_length(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nContent-Length: abc\r\n\r\n")
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nContent-Length: -1\r\n\r\n")

    def test_incomplete_body(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")

    def test_case_insensitive_headers(self):
        """Test that header names are case-insensitive."""
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n"
        request = parse_request(raw)

        assert request.get_header("Content-Type") == "text/html"
        assert request.get_header("content-type") == "text/html"

    def test_repeated_and_folded_headers(self):
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"Accept: text/html\r\n"
            b"Accept: application/json\r\n"
            b"X-Long: first\r\n"
            b"  second\r\n"
            b"\r\n"
        )
        request = parse_request(raw)

        assert request.headers["accept"] == "text/html, application/json"
        assert request.headers["x-long"] == "first second"


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_raw_path_defaults_to_path(self):
        request = HTTPRequest(method="GET", path="/fs/a.txt")
        assert request.raw_path == "/fs/a.txt"

    def test_query_first_value(self):
        """Test that get_query returns the first of repeated values."""
        request = HTTPRequest(
            method="GET",
            path="/",
            query_params={"fmt": ["json", "html"]},
        )

        assert request.get_query("fmt") == "json"

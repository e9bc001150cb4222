"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fsserver import HTTPServer, ServerConfig


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request for a directory listing."""
    return (
        b"GET /fs/docs/?fmt=json&sort=name HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_head_request() -> bytes:
    """Sample HTTP/1.0 HEAD request for a file."""
    return (
        b"HEAD /fs/a.txt HTTP/1.0\r\n"
        b"Host: localhost:8080\r\n"
        b"\r\n"
    )


@pytest.fixture
def served_tree(tmp_path: Path) -> Path:
    """
    A small directory tree to serve:

        a.txt           "hello world"
        big.bin         100 KiB of patterned bytes
        .hidden         dot file, never listed
        docs/
            readme.md
        "with space"/
    """
    (tmp_path / "a.txt").write_bytes(b"hello world")
    (tmp_path / "big.bin").write_bytes(bytes(i % 251 for i in range(100 * 1024)))
    (tmp_path / ".hidden").write_bytes(b"secret")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "readme.md").write_bytes(b"# readme\n")
    (tmp_path / "with space").mkdir()
    return tmp_path


@pytest.fixture
def config(served_tree: Path) -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        root_dir=str(served_tree),
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.stop()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, raw: bytes) -> bytes:
        """Send raw request bytes, return everything until the server closes."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=5.0) as s:
            s.sendall(raw)
            return recv_all(s)

    def get(self, path: str, method: str = "GET", version: str = "HTTP/1.1") -> bytes:
        """One request with Connection: close; returns the raw response."""
        return self.request(
            f"{method} {path} {version}\r\n"
            f"Host: 127.0.0.1\r\n"
            f"Connection: close\r\n"
            f"\r\n".encode("latin-1")
        )


def recv_all(sock: socket.socket) -> bytes:
    """Read until the peer closes the connection."""
    data = b""
    while True:
        chunk = sock.recv(65536)
        if not chunk:
            return data
        data += chunk


def split_response(raw: bytes) -> tuple[str, dict, bytes]:
    """Split a raw response into (status line, lowercase headers, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return lines[0], headers, body


def decode_chunked(body: bytes) -> tuple[bytes, bool]:
    """
    Undo chunked framing.

    Returns:
        (payload, terminated) where terminated tells whether the zero
        length chunk was seen.
    """
    payload = b""
    while body:
        size_line, _, rest = body.partition(b"\r\n")
        size = int(size_line, 16)
        if size == 0:
            return payload, True
        payload += rest[:size]
        body = rest[size + 2:]
    return payload, False


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """A running server over ``served_tree``."""
    test_srv = TestServer(HTTPServer(config))
    test_srv.start()

    yield test_srv

    test_srv.stop()

"""
Unit tests for FileSystemHandler.
"""

import json
from pathlib import Path

import pytest

from fsserver.fs.errors import ConstructionFailure
from fsserver.fs.producers import DirectoryProducer, FileProducer
from fsserver.handlers import FileSystemHandler
from fsserver.http import HTTPStatus, NOT_FOUND_PAGE, Router, parse_request
from fsserver.http.request import HTTPRequest


def get(path: str, query: str = "") -> HTTPRequest:
    """Parse a GET request the way the server does."""
    target = f"{path}?{query}" if query else path
    return parse_request(f"GET {target} HTTP/1.1\r\nHost: test\r\n\r\n".encode("latin-1"))


@pytest.fixture
def handler(served_tree: Path) -> FileSystemHandler:
    return FileSystemHandler(str(served_tree), url_prefix="/fs", chunk_size=4096)


@pytest.fixture
def routed(handler: FileSystemHandler) -> Router:
    router = Router()
    router.mount("/fs", handler.handle)
    return router


def drain(response) -> bytes:
    body = b""
    try:
        while True:
            data = response.producer.pull(len(body), response.chunk_size)
            if data is None:
                return body
            body += data
    finally:
        response.producer.release()


class TestFileResponses:
    """Regular files."""

    def test_file_is_streamed(self, routed: Router):
        """Test that a file gets 200 with a FileProducer and its size."""
        response = routed.handle(get("/fs/a.txt"))

        assert response.status == HTTPStatus.OK
        assert isinstance(response.producer, FileProducer)
        assert response.content_length == 11
        assert response.chunk_size == 4096
        assert drain(response) == b"hello world"

    def test_nested_file(self, routed: Router):
        response = routed.handle(get("/fs/docs/readme.md"))

        assert response.status == HTTPStatus.OK
        assert drain(response) == b"# readme\n"

    def test_file_with_trailing_slash(self, routed: Router):
        """Test that a trailing slash after a file is a 404."""
        response = routed.handle(get("/fs/a.txt/"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.producer is None

    @pytest.mark.parametrize("target", ["/fs/é.txt", "/fs/%C3%A9.txt"])
    def test_non_ascii_name(self, routed: Router, served_tree: Path, target: str):
        """Test that a UTF-8 name is found whether sent raw or escaped."""
        (served_tree / "é.txt").write_bytes(b"accent")
        raw = f"GET {target} HTTP/1.1\r\nHost: test\r\n\r\n".encode("utf-8")

        response = routed.handle(parse_request(raw))

        assert response.status == HTTPStatus.OK
        assert drain(response) == b"accent"

    def test_file_vanishes_before_open(self, handler: FileSystemHandler, served_tree: Path):
        """Test that an open failure after classification is a 404."""
        response = handler.file_response(str(served_tree / "gone.txt"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.producer is None


class TestDirectoryResponses:
    """Directories, listings and redirects."""

    def test_listing(self, routed: Router):
        """Test that a canonical directory path streams a listing."""
        response = routed.handle(get("/fs/docs/"))

        assert response.status == HTTPStatus.OK
        assert isinstance(response.producer, DirectoryProducer)
        assert response.content_length is None
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"

        body = drain(response)
        assert b"Index of /docs/" in body
        assert b'<a href="readme.md">readme.md</a>' in body

    def test_prefix_alone_lists_root(self, routed: Router):
        """Test that the bare prefix serves the root listing."""
        for path in ("/fs", "/fs/"):
            response = routed.handle(get(path))

            assert response.status == HTTPStatus.OK
            body = drain(response)
            assert b"Index of /</title>" in body
            assert b'<a href="a.txt">a.txt</a>' in body

    def test_redirect_adds_slash(self, routed: Router):
        """Test that a directory without trailing slash is redirected."""
        response = routed.handle(get("/fs/docs"))

        assert response.status == HTTPStatus.MOVED_PERMANENTLY
        assert response.headers["Location"] == "/fs/docs/"
        assert response.body == b""
        assert response.producer is None

    def test_redirect_keeps_raw_path(self, routed: Router):
        """Test that the Location echoes percent escapes as sent."""
        response = routed.handle(get("/fs/with%20space"))

        assert response.status == HTTPStatus.MOVED_PERMANENTLY
        assert response.headers["Location"] == "/fs/with%20space/"

    def test_encoded_prefix_redirect(self, handler: FileSystemHandler):
        """Test the Location when the prefix itself was percent-encoded."""
        request = get("/%66s/with%20space")
        request.path_params = {"path": "/with space"}

        response = handler.handle(request)

        assert response.headers["Location"] == "/fs/with%20space/"

    def test_json_listing(self, routed: Router):
        """Test ?fmt=json on a directory."""
        response = routed.handle(get("/fs/", "fmt=json"))

        assert response.headers["Content-Type"] == "application/json; charset=utf-8"
        names = {item["name"] for item in json.loads(drain(response))}
        assert names == {"a.txt", "big.bin", "docs", "with space"}

    def test_other_fmt_is_html(self, routed: Router):
        response = routed.handle(get("/fs/", "fmt=xml"))

        assert response.headers["Content-Type"] == "text/html; charset=utf-8"
        drain(response)


class TestNotFound:
    """Everything that ends in the 404 page."""

    def test_missing(self, routed: Router):
        response = routed.handle(get("/fs/missing"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == NOT_FOUND_PAGE.encode()
        assert response.producer is None

    def test_hidden_files_are_served(self, routed: Router):
        """Test that dot files are only hidden from listings."""
        response = routed.handle(get("/fs/.hidden"))

        assert response.status == HTTPStatus.OK
        assert drain(response) == b"secret"

    def test_outside_prefix(self, routed: Router):
        """Test that paths outside the mount get the 404 page."""
        response = routed.handle(get("/other/a.txt"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == NOT_FOUND_PAGE.encode()

    def test_prefix_lookalike(self, routed: Router):
        """Test that /fsx is not under /fs."""
        assert routed.handle(get("/fsx")).status == HTTPStatus.NOT_FOUND

    def test_escape_from_root(self, handler: FileSystemHandler):
        """Test that a remainder escaping the root is not found."""
        request = HTTPRequest(method="GET", path="/fs/../../etc/passwd")
        request.path_params = {"path": "/../../etc/passwd"}

        assert handler.handle(request).status == HTTPStatus.NOT_FOUND


class TestConstructionFailure:
    """A producer is never leaked when the response cannot be built."""

    def test_producer_released_and_error_raised(self, served_tree: Path, monkeypatch):
        """Test that the producer is released before the failure propagates."""
        handler = FileSystemHandler(str(served_tree), chunk_size=0)
        opened = []

        original_open = FileProducer.open

        def tracking_open(path):
            producer = original_open(path)
            opened.append(producer)
            return producer

        monkeypatch.setattr(FileProducer, "open", staticmethod(tracking_open))

        with pytest.raises(ConstructionFailure) as exc_info:
            handler.handle(get("/fs/a.txt"))

        assert isinstance(exc_info.value.cause, ValueError)
        assert len(opened) == 1
        assert opened[0].closed

    def test_directory_producer_released(self, served_tree: Path, monkeypatch):
        """Test the same guarantee for listings."""
        handler = FileSystemHandler(str(served_tree), chunk_size=-1)
        opened = []

        original_open = DirectoryProducer.open

        def tracking_open(*args, **kwargs):
            producer = original_open(*args, **kwargs)
            opened.append(producer)
            return producer

        monkeypatch.setattr(DirectoryProducer, "open", staticmethod(tracking_open))

        with pytest.raises(ConstructionFailure):
            handler.handle(get("/fs/docs/"))

        assert opened[0].closed

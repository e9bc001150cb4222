"""
=============================================================================
FILESYSTEM HANDLER
=============================================================================

Serves one directory tree below a URL prefix.

=============================================================================
DECISION FLOW
=============================================================================

    GET /fs/<rest>
         │
         ▼
    strip prefix ─── "" ──────────────────────────────► listing of "/"
         │
         ▼
    resolve(root, rest) ── escapes root ──────────────► 404
         │
         ▼
    classify()
         │
         ├── FILE ─────────── open ──► 200, FileProducer, Content-Length
         │                     └─ fails ─► 404
         │
         ├── DIRECTORY ─┬─ no trailing "/" ──► 301 Location: /fs<rest>/
         │              └─ trailing "/" ─ open ──► 200, DirectoryProducer
         │                                  └─ fails ─► 404
         │
         └── NOT_FOUND ──────────────────────────────► 404

=============================================================================
OWNERSHIP
=============================================================================

A producer opened here belongs to the handler until the response carrying
it is returned; from then on the runtime releases it. If building that
response fails, the handler releases the producer itself and raises
ConstructionFailure so no response is sent at all.

=============================================================================
"""

import logging
from urllib.parse import quote

from ..fs.classifier import PathKind, classify, resolve
from ..fs.errors import ConstructionFailure, NotFound
from ..fs.producers import DirectoryProducer, FileProducer, ListingFormat, Producer
from ..http.request import HTTPRequest
from ..http.response import (
    DEFAULT_CHUNK_SIZE,
    HTTPResponse,
    ResponseBuilder,
    not_found,
)


logger = logging.getLogger(__name__)


CONTENT_TYPES = {
    ListingFormat.HTML: "text/html; charset=utf-8",
    ListingFormat.JSON: "application/json; charset=utf-8",
}


class FileSystemHandler:
    """
    Maps requests below ``url_prefix`` onto files and directories under
    ``root_dir``.

    Usage:
        handler = FileSystemHandler("/srv/www", url_prefix="/fs")
        router.mount("/fs", handler.handle)

    Args:
        root_dir: Directory to expose.
        url_prefix: Prefix the router mounts this handler at.
        chunk_size: Largest number of bytes requested per pull.
    """

    def __init__(
        self,
        root_dir: str,
        url_prefix: str = "/fs",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.root_dir = root_dir
        self.url_prefix = url_prefix.rstrip("/")
        self.chunk_size = chunk_size

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Build the response for ``request``.

        Raises:
            ConstructionFailure: If a streamed response could not be built.
        """
        path = self._relative_path(request)
        if not path:
            path = "/"

        full_path = resolve(self.root_dir, path)
        kind = classify(full_path) if full_path else PathKind.NOT_FOUND

        if kind is PathKind.FILE:
            return self.file_response(full_path)

        if kind is PathKind.DIRECTORY:
            if not path.endswith("/"):
                return self.redirect_response(request, path)
            return self.directory_response(full_path, path, self._listing_format(request))

        logger.debug(f"Not found: {path}")
        return not_found()

    # =========================================================================
    # RESPONSES
    # =========================================================================

    def file_response(self, full_path: str) -> HTTPResponse:
        """200 streaming the file, or 404 if it cannot be opened."""
        try:
            producer = FileProducer.open(full_path)
        except NotFound as e:
            logger.debug(f"{e}: {e.cause}")
            return not_found()

        return self._stream(producer, full_path, length=producer.size)

    def directory_response(
        self,
        full_path: str,
        display_path: str,
        fmt: ListingFormat = ListingFormat.HTML,
    ) -> HTTPResponse:
        """200 streaming a listing of unknown length, or 404."""
        try:
            producer = DirectoryProducer.open(full_path, display_path, fmt)
        except NotFound as e:
            logger.debug(f"{e}: {e.cause}")
            return not_found()

        return self._stream(producer, full_path, length=None,
                            content_type=CONTENT_TYPES[fmt])

    def redirect_response(self, request: HTTPRequest, path: str) -> HTTPResponse:
        """
        301 to the same directory with a trailing slash.

        The Location echoes the path as the client sent it, so percent
        escapes survive the round trip.
        """
        location = self.url_prefix + self._raw_relative_path(request, path) + "/"
        logger.debug(f"Redirecting {request.raw_path} -> {location}")
        return ResponseBuilder().redirect(location, permanent=True).build()

    def _stream(
        self,
        producer: Producer,
        full_path: str,
        length=None,
        content_type=None,
    ) -> HTTPResponse:
        try:
            builder = ResponseBuilder().stream(producer, length=length,
                                               chunk_size=self.chunk_size)
            if content_type:
                builder.content_type(content_type)
            return builder.build()
        except Exception as e:
            producer.release()
            raise ConstructionFailure(full_path, e) from e

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _relative_path(self, request: HTTPRequest) -> str:
        # Set by Router.mount; direct callers fall back to stripping the prefix
        path = request.path_params.get("path")
        if path is not None:
            return path
        if request.path.startswith(self.url_prefix):
            return request.path[len(self.url_prefix):]
        return request.path

    def _raw_relative_path(self, request: HTTPRequest, path: str) -> str:
        raw = request.raw_path
        if raw.startswith(self.url_prefix + "/"):
            return raw[len(self.url_prefix):]
        # Prefix itself was percent-encoded; re-encode the decoded remainder
        return quote(path, errors="surrogateescape")

    def _listing_format(self, request: HTTPRequest) -> ListingFormat:
        if request.get_query("fmt") == "json":
            return ListingFormat.JSON
        return ListingFormat.HTML

"""
=============================================================================
FSSERVER - Static Content Server on Pull-Based Producers
=============================================================================

Serves one directory tree over HTTP/1.1 from raw sockets and a thread pool.
Response bodies are never held in memory whole: a file or directory listing
is wrapped in a producer, and the connection pulls bounded pieces from it
until the body is complete.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    fsserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m fsserver)
    ├── server.py            # HTTPServer, response transmission
    ├── config.py            # ServerConfig dataclass
    ├── core/                # Sockets and threads
    │   ├── socket_server.py # Listening socket, accept loop
    │   ├── connection.py    # Request reads, streamed writes
    │   └── thread_pool.py   # Worker threads
    ├── http/                # Protocol
    │   ├── request.py       # Request parsing
    │   ├── response.py      # Responses, fixed or streamed
    │   ├── router.py        # Exact routes and prefix mounts
    │   └── status_codes.py  # HTTPStatus enum
    ├── fs/                  # Filesystem
    │   ├── classifier.py    # FILE / DIRECTORY / NOT_FOUND
    │   ├── producers.py     # FileProducer, DirectoryProducer
    │   └── errors.py        # NotFound, StreamAbort, ConstructionFailure
    ├── middleware/
    │   ├── base.py          # Middleware pipeline
    │   └── logging.py       # Access log
    └── handlers/
        └── filesystem.py    # URL prefix → producer responses

=============================================================================
QUICK START
=============================================================================

    from fsserver import HTTPServer, ServerConfig
    from fsserver.middleware import LoggingMiddleware

    server = HTTPServer(ServerConfig(root_dir="./public", port=8080))
    server.use(LoggingMiddleware())
    server.run()

    # curl http://127.0.0.1:8080/fs/              HTML listing
    # curl http://127.0.0.1:8080/fs/?fmt=json     JSON listing
    # curl http://127.0.0.1:8080/fs/index.html    file contents

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer, create_app
from .config import ServerConfig
from .handlers import FileSystemHandler

__all__ = ["HTTPServer", "ServerConfig", "FileSystemHandler", "create_app", "__version__"]

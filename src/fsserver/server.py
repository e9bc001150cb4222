"""
=============================================================================
MAIN HTTP SERVER
=============================================================================

Ties the components together into a standalone file server.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │    Router    │        │
    │    └──────────────┘    └──────────────┘    └──────┬───────┘        │
    │                                                   │ mount /fs      │
    │                                                   ▼                │
    │                                          ┌──────────────────┐      │
    │                                          │FileSystemHandler │      │
    │                                          └──────────────────┘      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST FLOW
=============================================================================

    accept ──► worker thread ──► read_request ──► parse
                                                    │
                      middleware ──► router ──► handler
                                                    │
                                              HTTPResponse
                                                    │
                                          _queue_response()
                                            ├─ add CORS header
                                            ├─ pick body framing
                                            ├─ send head
                                            ├─ pull loop (GET only)
                                            └─ release producer (always)

=============================================================================
"""

import logging
from typing import Optional, Callable

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool, StreamResult
from .fs.errors import ConstructionFailure, StreamAbort
from .handlers import FileSystemHandler
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, Router, error_response,
)
from .middleware import MiddlewarePipeline, Middleware


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Thread-pooled HTTP/1.1 file server.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(root_dir="/srv/www"))
        server.use(LoggingMiddleware())

        @server.get("/status")
        def status(request):
            return ResponseBuilder().json({"ok": True}).build()

        server.run()   # blocks; Ctrl+C stops it

    The filesystem is mounted at config.url_prefix when the server is built.

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = Router()
        self._middleware = MiddlewarePipeline()

        self.files = FileSystemHandler(
            root_dir=self.config.root_dir,
            url_prefix=self.config.url_prefix,
            chunk_size=self.config.chunk_size,
        )
        self._router.mount(self.config.url_prefix, self.files.handle)

        # middleware.wrap(router.handle), built in run()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware; the first added is outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port) once listening."""
        return self._socket_server.address

    def route(self, path: str, method: Optional[str] = None, **kwargs):
        """Register an exact route for ``method`` (any if None)."""
        return self._router.route(path, method, **kwargs)

    def get(self, path: str, **kwargs):
        """Register a GET route."""
        return self._router.get(path, **kwargs)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Serve until stopped (blocking).

        Args:
            host: Override config host.
            port: Override config port.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._running = True
        self._setup_logging()

        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()

        logger.info(
            f"Serving {self.config.root_dir} at {self.config.url_prefix}/ "
            f"on {self.config.host}:{self.config.port}"
        )

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Ask a running server to stop; run() returns shortly after."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is up. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("fsserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=30.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to the pool, or answer 503 if it is full."""
        if not self._thread_pool.submit(self._process_connection, args=(conn,)):
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Serve requests on ``conn`` until it closes (runs in a worker).

        =====================================================================
        KEEP-ALIVE LOOP
        =====================================================================

            read → parse → handle → queue response → (keep-alive?) → read

        The loop ends when the client closes, a response requires the
        connection to close, or anything fails.

        =====================================================================
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        self._send_error(conn, HTTPStatus(e.status_code), str(e))
                        break

                    conn.state = ConnectionState.PROCESSING

                    try:
                        response = self._handler(request)
                    except ConstructionFailure as e:
                        # Nothing is sent; the producer was released by the handler
                        logger.error(f"[{conn.id}] {e}: {e.cause}")
                        break
                    except Exception as e:
                        logger.exception(f"[{conn.id}] Handler error: {e}")
                        response = error_response(
                            HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error"
                        )

                    if not self._queue_response(conn, response, request):
                        break

                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                except ValueError as e:
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                    break

                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _queue_response(
        self,
        conn: Connection,
        response: HTTPResponse,
        request: Optional[HTTPRequest] = None,
    ) -> bool:
        """
        Transmit ``response`` and release its producer, if any.

        =====================================================================
        FRAMING
        =====================================================================

            fixed body                     Content-Length
            producer, known length         Content-Length, pull loop
            producer, unknown, HTTP/1.1    chunked, pull loop
            producer, unknown, HTTP/1.0    pull loop, then close
            HEAD                           head only, producer never pulled

        =====================================================================

        Args:
            conn: Connection to write to.
            response: Response to send.
            request: The request answered; None for runtime errors, which
                     always close the connection.

        Returns:
            True if the connection can serve another request.
        """
        producer = response.producer
        try:
            response.headers["Access-Control-Allow-Origin"] = self.config.cors_origin

            keep_alive = (
                request is not None
                and request.is_keep_alive
                and self.config.keep_alive
                and response.headers.get("Connection", "").lower() != "close"
            )

            chunked = False
            if response.is_streamed and response.content_length is None:
                if request is not None and request.supports_chunked:
                    chunked = True
                else:
                    # The end of the body is the end of the connection
                    keep_alive = False

            if keep_alive:
                response.headers["Connection"] = "keep-alive"
                response.headers.setdefault(
                    "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                )
            else:
                response.headers["Connection"] = "close"

            server_name = self.config.server_name

            if request is not None and request.method == "HEAD":
                sent = conn.send_response(response.head_bytes(server_name, chunked))
                return sent and keep_alive

            if not response.is_streamed:
                return conn.send_response(response.to_bytes(server_name)) and keep_alive

            if not conn.send_response(response.head_bytes(server_name, chunked)):
                return False

            logger.debug(
                f"[{conn.id}] Streaming body: length={response.content_length}, "
                f"chunk_size={response.chunk_size}, chunked={chunked}"
            )
            try:
                result = conn.send_stream(
                    producer,
                    response.content_length,
                    response.chunk_size,
                    chunked,
                )
            except StreamAbort as e:
                logger.warning(f"[{conn.id}] Stream aborted: {e}")
                return False

            return result is StreamResult.COMPLETE and keep_alive

        finally:
            if producer is not None:
                producer.release()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Send a JSON error raised outside any handler; closes afterwards."""
        self._queue_response(conn, error_response(status, message))


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Create a server instance.

        app = create_app(ServerConfig(root_dir="./public"))
        app.run()
    """
    return HTTPServer(config)

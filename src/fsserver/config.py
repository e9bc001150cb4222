"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the file server.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── fsserver --root /srv/www --port 3000                       │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_ROOT_DIR=/srv/www HTTP_PORT=3000 fsserver             │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Invalid values are rejected by validate() at startup, before any socket
is opened.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .fs.producers import MIN_CHUNK_SIZE
from .http.response import DEFAULT_CHUNK_SIZE


@dataclass
class ServerConfig:
    """
    Configuration for the file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size, timeout
    HTTP        keep_alive, keep_alive_timeout, max_request_size
    THREADING   min_workers, max_workers
    FILESYSTEM  root_dir, url_prefix, chunk_size, cors_origin
    LOGGING     log_level, log_format

    =========================================================================
    EXAMPLE
    =========================================================================

        ServerConfig(
            host="0.0.0.0",
            port=8080,
            root_dir="/srv/www",   # served below /fs
            chunk_size=65536,      # at most 64 KiB per pull
        )

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on every interface."""

    port: int = 8080
    """Port to listen on. 0 lets the operating system pick a free one."""

    backlog: int = 128
    """Accept queue length before new connections are refused."""

    buffer_size: int = 8192
    """recv() size when reading requests."""

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds for reads and writes."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0

    max_request_size: int = 1024 * 1024
    """
    Largest accepted request in bytes. The server only answers GET and
    HEAD, so requests are headers and little else.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100
    """Connections allowed to wait for a worker before 503 is returned."""

    # ─────────────────────────────────────────────────────────────────────
    # FILESYSTEM
    # ─────────────────────────────────────────────────────────────────────

    root_dir: str = "."
    """Directory exposed below url_prefix."""

    url_prefix: str = "/fs"
    """URL prefix owning the filesystem. Leading "/", no trailing "/"."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    """Largest max_len passed to a producer in one pull (32 pages)."""

    cors_origin: str = "*"
    """Value of Access-Control-Allow-Origin on every response."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG shows producer open/release and chunk sizes."""

    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    server_name: str = "fsserver/1.0"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST        Server host (default: 127.0.0.1)
        HTTP_PORT        Server port (default: 8080)
        HTTP_WORKERS     Max worker threads (default: 16)
        HTTP_TIMEOUT     Socket timeout in seconds (default: 30)
        HTTP_LOG_LEVEL   Logging level (default: INFO)
        HTTP_ROOT_DIR    Directory to serve (default: .)
        HTTP_URL_PREFIX  URL prefix (default: /fs)
        HTTP_CHUNK_SIZE  Max bytes per pull (default: 32 pages)

        =====================================================================
        """
        max_workers = int(os.getenv("HTTP_WORKERS", "16"))
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            min_workers=min(4, max_workers),
            max_workers=max_workers,
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
            root_dir=os.getenv("HTTP_ROOT_DIR", "."),
            url_prefix=os.getenv("HTTP_URL_PREFIX", "/fs"),
            chunk_size=int(os.getenv("HTTP_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE))),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        # Directory listings yield nothing for smaller buffers
        if self.chunk_size < MIN_CHUNK_SIZE:
            raise ValueError(f"chunk_size must be >= {MIN_CHUNK_SIZE}")

        if not self.url_prefix.startswith("/") or self.url_prefix.endswith("/"):
            raise ValueError(
                f"url_prefix must start with '/' and not end with '/': {self.url_prefix!r}"
            )

        if not os.path.isdir(self.root_dir):
            raise ValueError(f"root_dir is not a directory: {self.root_dir}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")

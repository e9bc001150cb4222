"""
=============================================================================
FSSERVER CLI ENTRY POINT
=============================================================================

    # Serve the current directory at http://127.0.0.1:8080/fs/
    python -m fsserver

    # Serve ./public on all interfaces, port 3000
    python -m fsserver --root ./public --host 0.0.0.0 --port 3000

    # Mount somewhere else, pull in smaller pieces
    python -m fsserver --prefix /files --chunk-size 4096

Settings are read from the environment first (see ServerConfig.from_env),
then overridden by any flags given here.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .server import HTTPServer
from .config import ServerConfig
from .middleware import LoggingMiddleware


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fsserver",
        description="Serve a directory tree over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m fsserver                          # ./ at /fs on 127.0.0.1:8080
  python -m fsserver --root /srv/www          # Serve another directory
  python -m fsserver --port 3000 -H 0.0.0.0   # Listen on all interfaces
  python -m fsserver --log-format json        # JSON access log
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Worker threads kept running (max is 2x this)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # FILESYSTEM
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Directory to serve (default: current directory)"
    )

    parser.add_argument(
        "--prefix",
        default=None,
        help="URL prefix the directory is mounted at (default: /fs)"
    )

    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Largest piece requested from a file or listing per write"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"fsserver {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment settings with command-line flags applied on top."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = args.workers * 2
    if args.root is not None:
        config.root_dir = args.root
    if args.prefix is not None:
        config.url_prefix = args.prefix
    if args.chunk_size is not None:
        config.chunk_size = args.chunk_size
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        server = HTTPServer(config_from_args(args))
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    server.use(LoggingMiddleware(log_format=server.config.log_format))

    try:
        server.run()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

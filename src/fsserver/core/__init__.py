"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the HTTP layer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SOCKET SERVER                                                        │
    │  listening socket, accept loop, SIGTERM/SIGINT → graceful stop      │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ new Connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ THREAD POOL                                                          │
    │  bounded queue, min..max workers, one task per connection           │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ worker runs the connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ CONNECTION                                                           │
    │  buffered request reads, keep-alive, producer pull loop             │
    └─────────────────────────────────────────────────────────────────────┘

Thread-per-connection keeps a streamed body simple: the worker blocks in
sendall() while the client drains its socket, so a producer is only pulled
as fast as the client reads.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, StreamResult
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "StreamResult",
    "ThreadPool",
]

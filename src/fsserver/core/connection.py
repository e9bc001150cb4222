"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: buffered request reading, response
writing, and the pull loop that drains a producer onto the wire.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

TCP keeps byte order but not message boundaries. One recv() may hold half
a request line, or two pipelined requests. Data is therefore buffered until
the header terminator (\\r\\n\\r\\n) shows up, then Content-Length more body
bytes are read. Anything after that stays in the buffer for the next
request on a keep-alive connection.

=============================================================================
STREAMING A BODY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       send_stream() LOOP                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   offset = 0                                                         │
    │   loop:                                                              │
    │       data = producer.pull(offset, max_len)                          │
    │                                                                      │
    │       None       → end of stream                                     │
    │       b""        → pull again                                        │
    │       bytes      → write (framed as a chunk if chunked)              │
    │                    offset += len(data)                               │
    │       StreamAbort→ propagates; caller closes the connection          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Known length:    max_len = min(chunk_size, remaining); stop when the
                     declared length is out. An early None truncates the
                     body and the connection must be closed.
    Chunked:         every piece is "<hex len>\\r\\n<data>\\r\\n",
                     finished by "0\\r\\n\\r\\n".
    Close-delimited: raw bytes; the caller closes the connection after.

send_stream() never releases the producer. Whoever owns the response does.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► PROCESSING ──────► WRITING ────────┐
     │             │                                    │           │
     │             │                                    │           ▼
     │             │                                    │      KEEP_ALIVE
     │             ▼                                    │           │
     └──────────► CLOSING ◄─────────────────────────────┴───────────┘
                    │
                    ▼
                  CLOSED

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..fs.producers import Producer


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


class StreamResult(Enum):
    """How a streamed body ended."""
    COMPLETE = "complete"          # Every byte sent, framing finished
    TRUNCATED = "truncated"        # Producer ended before the declared length
    DISCONNECTED = "disconnected"  # Client went away mid-body


@dataclass
class Connection:
    """
    Represents a client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │  1. BUFFERED READING    whole requests out of a byte stream         │
    │  2. TIMEOUTS            30s first request, 5s between keep-alives   │
    │  3. STREAMING           drive a producer until the body is done     │
    │  4. GRACEFUL CLOSE      shutdown, drain, close                      │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier for log lines.
        state: Current connection state.
        requests_handled: Number of requests read on this connection.
        bytes_sent: Total bytes written, headers included.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0
    bytes_sent: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            Request bytes (headers and body), or None if the client closed
            the connection or a keep-alive wait timed out.

        Raises:
            TimeoutError: If the first request does not arrive in time.
            ValueError: If the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None

                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break

                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            # Leftover bytes belong to the next pipelined request
            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """Content-Length from raw header bytes, 0 if absent or invalid."""
        for line in headers.decode("latin-1").lower().split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(0, int(line.split(":", 1)[1].strip()))
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Write ``data`` in full.

        Returns:
            True on success, False if the client is gone.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

        self.bytes_sent += len(data)
        self.last_activity = time.time()
        return True

    def send_stream(
        self,
        producer: Producer,
        length: Optional[int],
        chunk_size: int,
        chunked: bool,
    ) -> StreamResult:
        """
        Pull from ``producer`` until the body is complete and write it out.

        Args:
            producer: Body source. Not released here.
            length: Declared body length, or None if unknown.
            chunk_size: Largest max_len handed to pull().
            chunked: Frame an unknown-length body with chunked encoding.

        Returns:
            How the body ended.

        Raises:
            StreamAbort: If the producer fails mid-body.
        """
        self.state = ConnectionState.WRITING
        offset = 0

        while True:
            if length is not None:
                remaining = length - offset
                if remaining <= 0:
                    break
                max_len = min(chunk_size, remaining)
            else:
                max_len = chunk_size

            data = producer.pull(offset, max_len)

            if data is None:
                if length is not None:
                    logger.warning(
                        f"[{self.id}] Body ended at {offset} of {length} bytes"
                    )
                    return StreamResult.TRUNCATED
                break

            if not data:
                continue

            if length is not None and len(data) > length - offset:
                data = data[:length - offset]

            frame = f"{len(data):x}\r\n".encode("ascii") + data + b"\r\n" if chunked else data
            if not self.send_response(frame):
                return StreamResult.DISCONNECTED
            offset += len(data)

        if chunked and length is None:
            if not self.send_response(b"0\r\n\r\n"):
                return StreamResult.DISCONNECTED

        return StreamResult.COMPLETE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

            1. shutdown(SHUT_WR)  send FIN, the peer sees end of body
            2. drain              discard anything the client still sends
            3. close()            release the descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def set_keep_alive(self):
        """Mark connection as waiting for the next request."""
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

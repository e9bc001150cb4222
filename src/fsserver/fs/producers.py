"""
=============================================================================
PULL-BASED BODY PRODUCERS
=============================================================================

A producer turns an open filesystem handle into response body bytes, one
chunk at a time, whenever the HTTP runtime asks for more.

=============================================================================
THE PRODUCER CONTRACT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      RUNTIME  ◄──►  PRODUCER                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   pull(offset, max_len)                                             │
    │       │                                                              │
    │       ├── bytes (non-empty)  → send them, advance offset, pull again│
    │       ├── b""                → nothing this time, pull again        │
    │       ├── None               → end-of-stream, body complete         │
    │       └── raise StreamAbort  → abnormal end, cut the connection     │
    │                                                                      │
    │   release()                                                          │
    │       └── close the handle; called EXACTLY ONCE by the runtime      │
    │           after success, failure or client disconnect               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The runtime calls pull() serially for one connection, never concurrently,
so producers hold no locks. Each pull() does one bounded read and returns.

Two implementations exist:

    FileProducer       seek + read on one open binary file
    DirectoryProducer  4-phase state machine over one os.scandir() iterator

=============================================================================
DIRECTORY LISTING STATE MACHINE
=============================================================================

        ┌────────┐  preamble   ┌─────────┐  exhausted   ┌────────┐  tail  ┌──────┐
        │ HEADER │ ──────────► │ ENTRIES │ ───────────► │ FOOTER │ ─────► │ DONE │
        └────────┘             └────┬────┘              └────────┘        └──────┘
                                    │  ▲
                                    └──┘  one entry (or b"" for
                                          a hidden one) per pull

The phase only moves forward. An offer smaller than MIN_CHUNK_SIZE leaves
the phase untouched and yields b"", so a retry with a bigger buffer picks
up exactly where the listing stood.

=============================================================================
"""

import html
import json
import logging
import os
from enum import Enum
from typing import BinaryIO, Optional, Protocol, runtime_checkable
from urllib.parse import quote

from .errors import NotFound, StreamAbort


logger = logging.getLogger(__name__)


# Smallest buffer a DirectoryProducer accepts. Below this it yields b"".
MIN_CHUNK_SIZE = 512


@runtime_checkable
class Producer(Protocol):
    """Anything the runtime can stream a response body from."""

    def pull(self, offset: int, max_len: int) -> Optional[bytes]:
        ...

    def release(self) -> None:
        ...


# =============================================================================
# FILE PRODUCER
# =============================================================================

class FileProducer:
    """
    Streams the bytes of one regular file.

    The producer exclusively owns its file object. Every pull() seeks to the
    requested offset first, so the runtime is free to ask for any position.

    Usage:
        with FileProducer.open("/srv/data.bin") as producer:
            chunk = producer.pull(0, 65536)
    """

    def __init__(self, file: BinaryIO, size: int, path: str = ""):
        self._file: Optional[BinaryIO] = file
        self.size = size
        self.path = path

    @classmethod
    def open(cls, path: str) -> "FileProducer":
        """
        Open ``path`` for reading.

        Raises:
            NotFound: If the file cannot be opened or inspected.
        """
        try:
            file = open(path, "rb")
        except (OSError, ValueError) as e:
            raise NotFound(path, e) from e

        try:
            size = os.fstat(file.fileno()).st_size
        except OSError as e:
            file.close()
            raise NotFound(path, e) from e

        logger.debug(f"Opened file {path} ({size} bytes)")
        return cls(file, size, path)

    @property
    def closed(self) -> bool:
        """True once release() has run."""
        return self._file is None

    def pull(self, offset: int, max_len: int) -> Optional[bytes]:
        """
        Read up to ``max_len`` bytes starting at ``offset``.

        A short read is not an error; the runtime calls again with the
        offset advanced by what it received.

        Returns:
            The bytes read, or None once nothing is left (end-of-stream).

        Raises:
            StreamAbort: If seeking or reading fails.
        """
        if self._file is None:
            raise StreamAbort(self.path, "producer already released")

        try:
            self._file.seek(offset)
        except (OSError, ValueError) as e:
            raise StreamAbort(self.path, f"seek to {offset} failed: {e}") from e

        try:
            data = self._file.read(max_len)
        except OSError as e:
            raise StreamAbort(self.path, f"read at {offset} failed: {e}") from e

        if not data:
            return None
        return data

    def release(self) -> None:
        """Close the file. Later calls do nothing."""
        if self._file is None:
            return
        file, self._file = self._file, None
        file.close()
        logger.debug(f"Released file {self.path}")

    def __enter__(self) -> "FileProducer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


# =============================================================================
# DIRECTORY PRODUCER
# =============================================================================

class ListingPhase(Enum):
    """Where a directory listing currently stands."""
    HEADER = "header"
    ENTRIES = "entries"
    FOOTER = "footer"
    DONE = "done"


class ListingFormat(Enum):
    """Output flavour of a directory listing."""
    HTML = "html"
    JSON = "json"


HTML_HEADER = (
    "<!DOCTYPE html>"
    "<html>"
    "  <head>"
    "    <title>Index of {path}</title>"
    "  </head>"
    "  <body>"
    "    <h1>Index of {path}</h1>"
    "    <ul>"
)
HTML_ENTRY = '<li><a href="{href}">{label}</a></li>'
HTML_FOOTER = "</ul></body></html>"


class DirectoryProducer:
    """
    Renders a listing of one open directory across many pulls.

    =========================================================================
    ONE FRAGMENT PER PULL
    =========================================================================

        pull #1   HEADER   → "<!DOCTYPE html>...<ul>"
        pull #2   ENTRIES  → '<li><a href="a.txt">a.txt</a></li>'
        pull #3   ENTRIES  → b""          (".hidden" skipped)
        pull #4   ENTRIES  → '<li><a href="b">b</a></li>'
        pull #5   ENTRIES  → b""          (iterator exhausted → FOOTER)
        pull #6   FOOTER   → "</ul></body></html>"
        pull #7   DONE     → None         (end-of-stream)

    Entry order is whatever the operating system returns.

    The offset argument is ignored: a listing cannot be seeked.

    A fragment longer than the offered buffer (a very long, heavily escaped
    name) is never cut off: the tail is held back and handed out on the
    next pulls before the state machine moves on.

    =========================================================================
    """

    def __init__(
        self,
        entries,
        display_path: str,
        fmt: ListingFormat = ListingFormat.HTML,
        path: str = "",
    ):
        """
        Args:
            entries: An open os.scandir() iterator, owned from now on.
            display_path: Path shown in the page; never used for I/O.
            fmt: HTML page or JSON array.
            path: Filesystem path, for log and error messages.
        """
        self._entries = entries
        self.display_path = display_path
        self.format = fmt
        self.path = path
        self.phase = ListingPhase.HEADER
        self._pending = b""
        self._rendered_entries = 0

    @classmethod
    def open(
        cls,
        path: str,
        display_path: str,
        fmt: ListingFormat = ListingFormat.HTML,
    ) -> "DirectoryProducer":
        """
        Open ``path`` as a directory.

        Raises:
            NotFound: If the directory cannot be opened.
        """
        try:
            entries = os.scandir(path)
        except (OSError, ValueError) as e:
            raise NotFound(path, e) from e

        logger.debug(f"Opened directory {path} for {fmt.value} listing")
        return cls(entries, display_path, fmt, path)

    @property
    def closed(self) -> bool:
        """True once release() has run."""
        return self._entries is None

    def pull(self, offset: int, max_len: int) -> Optional[bytes]:
        """
        Advance the listing by at most one fragment.

        Returns:
            Fragment bytes, b"" when this call produced nothing (buffer too
            small, hidden entry, or end of enumeration), or None when the
            listing is complete.

        Raises:
            StreamAbort: If reading the directory fails.
        """
        if max_len < MIN_CHUNK_SIZE:
            return b""

        if self._pending:
            return self._take(self._pending, max_len)

        if self.phase is ListingPhase.HEADER:
            self.phase = ListingPhase.ENTRIES
            return self._take(self._render_header(), max_len)

        if self.phase is ListingPhase.ENTRIES:
            entry = self._next_entry()
            if entry is None:
                self.phase = ListingPhase.FOOTER
                return b""
            if entry.name.startswith("."):
                return b""
            return self._take(self._render_entry(entry), max_len)

        if self.phase is ListingPhase.FOOTER:
            self.phase = ListingPhase.DONE
            return self._take(self._render_footer(), max_len)

        return None

    def release(self) -> None:
        """Close the directory iterator. Later calls do nothing."""
        if self._entries is None:
            return
        entries, self._entries = self._entries, None
        entries.close()
        logger.debug(f"Released directory {self.path}")

    def __enter__(self) -> "DirectoryProducer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    # -------------------------------------------------------------------------
    # internals
    # -------------------------------------------------------------------------

    def _take(self, fragment: bytes, max_len: int) -> bytes:
        self._pending = fragment[max_len:]
        return fragment[:max_len]

    def _next_entry(self) -> Optional[os.DirEntry]:
        if self._entries is None:
            raise StreamAbort(self.path, "producer already released")
        try:
            return next(self._entries, None)
        except OSError as e:
            raise StreamAbort(self.path, f"reading directory failed: {e}") from e

    def _render_header(self) -> bytes:
        if self.format is ListingFormat.JSON:
            return b"["
        return _encode(HTML_HEADER.format(path=html.escape(self.display_path)))

    def _render_entry(self, entry: os.DirEntry) -> bytes:
        name = entry.name

        if self.format is ListingFormat.JSON:
            separator = "," if self._rendered_entries else ""
            self._rendered_entries += 1
            record = {"name": name, "mode": "d" if _is_dir(entry) else "-"}
            return _encode(separator + json.dumps(record))

        self._rendered_entries += 1
        href = quote(name, safe="", errors="surrogateescape")
        return _encode(HTML_ENTRY.format(href=href, label=html.escape(name)))

    def _render_footer(self) -> bytes:
        if self.format is ListingFormat.JSON:
            return b"]"
        return _encode(HTML_FOOTER)


def _is_dir(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir()
    except OSError:
        return False


def _encode(text: str) -> bytes:
    # surrogateescape keeps undecodable filename bytes intact
    return text.encode("utf-8", "surrogateescape")

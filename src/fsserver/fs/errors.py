"""
=============================================================================
FILESYSTEM ERRORS
=============================================================================

Exceptions raised while turning a URL path into a streamed response.

=============================================================================
ERROR TAXONOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHEN THINGS GO WRONG                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   NotFound              stat()/open() failed, for ANY reason        │
    │   ────────              (absent, permissions, broken link, I/O)     │
    │                         └── handler answers with the 404 page       │
    │                                                                      │
    │   StreamAbort           seek()/read() failed mid-stream             │
    │   ───────────           └── headers are already on the wire, so     │
    │                             the connection is simply cut            │
    │                                                                      │
    │   ConstructionFailure   the response object could not be built      │
    │   ───────────────────   └── open handle already released,           │
    │                             nothing queued, connection dropped      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

No error is retried internally. A client that wants another attempt sends
a fresh request.

=============================================================================
"""

from typing import Optional


class FileSystemError(Exception):
    """
    Base class for filesystem serving errors.

    Carries the filesystem path involved so log lines can name it.
    """

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class NotFound(FileSystemError):
    """A path could not be looked up or opened."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(f"Not found: {path}", path)
        self.cause = cause


class StreamAbort(FileSystemError):
    """
    A producer cannot continue after the response was committed.

    HTTP offers no way to change the status code once the body is
    streaming, so the runtime reacts by closing the connection early.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"Stream aborted for {path}: {reason}", path)
        self.reason = reason


class ConstructionFailure(FileSystemError):
    """The response for an already-opened resource could not be built."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(f"Could not build response for {path}", path)
        self.cause = cause

"""
=============================================================================
FILESYSTEM CORE
=============================================================================

The incremental response-generation engine:

    classifier.py   URL path → filesystem path → FILE / DIRECTORY / NOT_FOUND
    producers.py    FileProducer and DirectoryProducer (pull / release)
    errors.py       NotFound, StreamAbort, ConstructionFailure

Nothing in this package touches sockets. The HTTP runtime drives the
producers; see fsserver.core.connection.Connection.send_stream().

=============================================================================
"""

from .classifier import PathKind, classify, resolve
from .errors import FileSystemError, NotFound, StreamAbort, ConstructionFailure
from .producers import (
    Producer,
    FileProducer,
    DirectoryProducer,
    ListingPhase,
    ListingFormat,
    MIN_CHUNK_SIZE,
)

__all__ = [
    # Classification
    "PathKind",
    "classify",
    "resolve",

    # Errors
    "FileSystemError",
    "NotFound",
    "StreamAbort",
    "ConstructionFailure",

    # Producers
    "Producer",
    "FileProducer",
    "DirectoryProducer",
    "ListingPhase",
    "ListingFormat",
    "MIN_CHUNK_SIZE",
]

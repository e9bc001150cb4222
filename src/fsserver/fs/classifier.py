"""
=============================================================================
PATH CLASSIFICATION
=============================================================================

Decides what a request path points at before any handle is opened.

    URL path after prefix        resolve()              classify()
    ─────────────────────   ──────────────────►   ─────────────────►
        "/docs/a.txt"        "<root>/docs/a.txt"      PathKind.FILE

Exactly one metadata lookup (os.stat) is made per classification. Every
failure of that lookup, whatever its errno, means NOT_FOUND: the caller
never learns whether the path is absent, unreadable or a dangling link.

There is no atomicity between this check and the later open(). A file can
vanish in between; the open then fails and the request still ends in a 404.

=============================================================================
"""

import os
import stat
from enum import Enum


class PathKind(Enum):
    """What a filesystem path resolved to."""
    NOT_FOUND = "not_found"
    FILE = "file"
    DIRECTORY = "directory"


def classify(path: str) -> PathKind:
    """
    Classify a filesystem path with a single stat() call.

    Anything that exists but is not a regular file is reported as a
    directory. Sockets, FIFOs and devices then fail to open as a
    directory and the request ends as not found.
    """
    try:
        st = os.stat(path)
    except (OSError, ValueError):
        # ValueError: embedded NUL byte in the path
        return PathKind.NOT_FOUND

    if stat.S_ISREG(st.st_mode):
        return PathKind.FILE
    return PathKind.DIRECTORY


def resolve(root: str, url_path: str) -> str:
    """
    Map a URL path (the part after the routing prefix) onto the filesystem.

    The path is joined below ``root`` and normalised. A result that would
    escape ``root`` is returned as an empty string, which classify()
    reports as NOT_FOUND. A trailing slash is kept, so "a.txt/" only
    stats as a directory.

    Args:
        root: Directory the server exposes.
        url_path: Decoded path such as "/docs/" or "/a.txt".

    Returns:
        Filesystem path, or "" when the path leaves ``root``.
    """
    root = os.path.abspath(root)
    relative = url_path.lstrip("/")
    full_path = os.path.normpath(os.path.join(root, relative))

    if full_path != root and not full_path.startswith(root.rstrip(os.sep) + os.sep):
        return ""
    if url_path.endswith("/") and full_path != root:
        full_path += os.sep
    return full_path

"""
=============================================================================
HANDLERS MODULE
=============================================================================

Request handlers: callables taking an HTTPRequest and returning an
HTTPResponse.

    ┌─────────────────────────────────────────────────────────────────────┐
    │    Request                 Handler                 Response         │
    │   ┌─────────┐           ┌───────────┐           ┌─────────────┐     │
    │   │ GET     │           │ classify  │           │ 200 + file  │     │
    │   │ /fs/a   │ ────────▶ │ open      │ ────────▶ │ producer    │     │
    │   └─────────┘           └───────────┘           └─────────────┘     │
    └─────────────────────────────────────────────────────────────────────┘

    from fsserver.handlers import FileSystemHandler

    files = FileSystemHandler("/srv/www", url_prefix="/fs")
    router.mount("/fs", files.handle)

=============================================================================
"""

from .filesystem import FileSystemHandler

__all__ = [
    "FileSystemHandler",
]

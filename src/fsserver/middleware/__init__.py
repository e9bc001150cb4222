"""
=============================================================================
MIDDLEWARE
=============================================================================

Layers wrapped around the router:

    base.py     Middleware ABC and MiddlewarePipeline
    logging.py  LoggingMiddleware, the access log

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",

    "LoggingMiddleware",
    "RequestLog",
]

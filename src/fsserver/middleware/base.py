"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Middleware wraps the router in layers (chain of responsibility). Each layer
sees the request on the way in and the response on the way out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Request ──────────────────────────────────────────────►           │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────────────────┐          │
    │   │ Logging  │───►│   ...    │───►│ router.handle        │          │
    │   └──────────┘    └──────────┘    └──────────────────────┘          │
    │                                                                      │
    │   ◄────────────────────────────────────────────── Response          │
    └─────────────────────────────────────────────────────────────────────┘

A response returned through the chain may carry an open producer. Its body
has not been produced yet when middleware sees it, so middleware must not
read or replace a streamed body. Headers are fair game.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class Stamp(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.set_header("X-Served-By", "fsserver")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Call ``next(request)`` to continue the chain, or return a response
        directly to short-circuit it.
        """
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

    First added is outermost:

        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(router.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append ``middleware``. Returns self for chaining."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain: MW1 → MW2 → ... → handler.

        Wrapping happens in reverse so the first-added middleware ends up
        outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            produced: List[HTTPResponse] = []

            def next(request: HTTPRequest) -> HTTPResponse:
                response = next_handler(request)
                produced.append(response)
                return response

            try:
                return middleware(request, next)
            except Exception:
                # Dropped responses never reach the server
                for response in produced:
                    if response.producer is not None:
                        response.producer.release()
                raise
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)


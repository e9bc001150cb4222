"""
=============================================================================
URL ROUTER
=============================================================================

Maps request paths to handlers. Two kinds of entries exist:

- Routes: exact patterns with optional :param segments (/status, /items/:id)
- Mounts: a prefix that owns every path below it (/fs → filesystem handler)

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   GET /fs/docs/a.txt                                                 │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTER                                                      │   │
    │   │                                                              │   │
    │   │  Routes (tried first):                                       │   │
    │   │    GET  /status          → status_handler                    │   │
    │   │                                                              │   │
    │   │  Mounts (longest prefix first):                              │   │
    │   │    GET,HEAD  /fs         → filesystem handler  ← MATCH       │   │
    │   │                                                              │   │
    │   │  path_params = {"path": "/docs/a.txt"}                       │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   handler(request)                                                   │
    └─────────────────────────────────────────────────────────────────────┘

A mount matches its prefix exactly or followed by "/". "/fsx" does not
fall under "/fs". The remainder is handed over untouched, trailing slash
included, because the filesystem handler tells "/docs" and "/docs/" apart.

No match at all → 404 with the constant not-found page.
Path matches, method does not → 405 with an Allow header.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, List
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A handler bound to one URL pattern.

        Route(path="/items/:id", method="GET", handler=get_item)
    """

    path: str
    method: Optional[str]            # None = any method
    handler: Handler
    name: Optional[str] = None

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class Mount:
    """A handler owning every path at or below ``prefix``."""

    prefix: str
    handler: Handler
    methods: tuple[str, ...] = ("GET", "HEAD")

    def remainder(self, path: str) -> Optional[str]:
        """
        Part of ``path`` after the prefix, or None if the mount does not
        cover ``path``.

            prefix "/fs":  "/fs"       → ""
                           "/fs/"      → "/"
                           "/fs/a/b/"  → "/a/b/"
                           "/fsx"      → None
        """
        if path == self.prefix:
            return ""
        if path.startswith(self.prefix + "/"):
            return path[len(self.prefix):]
        return None


@dataclass
class RouteMatch:
    """
    Result of a successful match.

        Pattern: /items/:id    Path: /items/7    → params {"id": "7"}
        Mount:   /fs           Path: /fs/a.txt   → params {"path": "/a.txt"}
    """
    handler: Handler
    params: Dict[str, str]


class Router:
    """
    HTTP request router.

    ==========================================================================
    USAGE
    ==========================================================================

        router = Router()

        @router.get("/status")
        def status(request):
            return ResponseBuilder().json({"ok": True}).build()

        router.mount("/fs", FileSystemHandler(root_dir="/srv/www"))

    ==========================================================================
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._mounts: List[Mount] = []

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register an exact route.

        Args:
            path: URL pattern, e.g. /items/:id
            handler: Callable taking a request and returning a response
            method: HTTP method (None for any)
            name: Optional route name
        """
        pattern, param_names = self._compile_pattern(path)
        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            name=name,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        return route

    def mount(
        self,
        prefix: str,
        handler: Handler,
        methods: tuple[str, ...] = ("GET", "HEAD"),
    ) -> Mount:
        """
        Give ``handler`` every path at or below ``prefix``.

        Args:
            prefix: Leading "/", no trailing "/" (e.g. "/fs")
            handler: Callable taking a request and returning a response
            methods: Methods the mount answers; others get 405

        Raises:
            ValueError: If the prefix is malformed.
        """
        if not prefix.startswith("/") or (len(prefix) > 1 and prefix.endswith("/")):
            raise ValueError(f"Mount prefix must start with '/' and not end with '/': {prefix!r}")

        mount = Mount(prefix=prefix.rstrip("/"), handler=handler,
                      methods=tuple(m.upper() for m in methods))
        self._mounts.append(mount)
        # Longest prefix wins when mounts nest
        self._mounts.sort(key=lambda m: len(m.prefix), reverse=True)
        return mount

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile a route pattern into an anchored regex.

            "/items/:id"  →  ^/items/(?P<id>[^/]+)$
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")
        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    # =========================================================================
    # MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the handler for ``method`` and ``path``.

        Exact routes are tried first, in registration order, against the
        path with its trailing slash removed. Mounts see the path as sent.
        """
        method = method.upper()
        normalized = "/" + path.strip("/") if path != "/" else "/"

        for route in self._routes:
            if route.method and route.method != method:
                continue
            found = route._pattern.match(normalized)
            if found:
                return RouteMatch(handler=route.handler, params=found.groupdict())

        for mount in self._mounts:
            remainder = mount.remainder(path)
            if remainder is not None and method in mount.methods:
                return RouteMatch(handler=mount.handler, params={"path": remainder})

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """
        Methods that would be accepted for ``path``.

        Used to fill the Allow header of a 405 response.
        """
        normalized = "/" + path.strip("/") if path != "/" else "/"
        methods = set()

        for route in self._routes:
            if route._pattern.match(normalized):
                if route.method is None:
                    return []
                methods.add(route.method)

        for mount in self._mounts:
            if mount.remainder(path) is not None:
                methods.update(mount.methods)
                break

        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch ``request`` to its handler.

        Returns the handler's response, 405 when the path exists under
        other methods, or the 404 page.
        """
        found = self.match(request.method, request.path)

        if found:
            request.path_params = found.params
            return found.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)

        return not_found()

    # =========================================================================
    # DECORATORS
    # =========================================================================

    def route(
        self,
        path: str,
        method: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Callable[[Handler], Handler]:
        """
        Decorator form of add_route().

            @router.route("/status", method="GET")
            def status(request):
                ...
        """
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Register a GET route."""
        return self.route(path, "GET", name)

    def head(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Register a HEAD route."""
        return self.route(path, "HEAD", name)

    def routes(self) -> List[Route]:
        return list(self._routes)

    def mounts(self) -> List[Mount]:
        return list(self._mounts)

"""Fallback routing for requests that are not vanity import paths.

The router is the "next handler" of the gopkg handler: a request whose path
matches no configured import path is offered to the routes registered here.
Routes are exact paths with optional ``{param}`` segments.
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from vanity.exceptions import HTTPMethodNotAllowedException

type RouteHandler = Callable[..., Awaitable[Any]]


def match_path(request_path: str, path_pattern: str) -> dict[str, str] | None:
    """Match a request path against a route pattern.

    Returns:
        A dict of path parameters if matched, else None.

    Examples:
        >>> match_path("/users/123", "/users/{user_id}")
        {'user_id': '123'}
    """
    pattern_parts = path_pattern.strip("/").split("/")
    request_parts = request_path.strip("/").split("/")
    if len(pattern_parts) != len(request_parts):
        return None

    params = {}
    for p_part, r_part in zip(pattern_parts, request_parts, strict=True):
        if p_part.startswith("{") and p_part.endswith("}"):
            if not r_part:
                return None
            params[p_part[1:-1]] = r_part
        elif p_part != r_part:
            return None

    return params


class Router:
    """HTTP request router for mapping paths to handlers.

    Examples:
        ```python
        router = Router()

        @injectable
        async def healthz(response: Inject[ResponseBuilder]):
            response.body("ok")

        router.add_route("/healthz", healthz, ["GET"])
        ```
    """

    def __init__(self):
        # Stores tuples of (path_pattern, methods, handler_callable)
        self._routes: list[tuple[str, frozenset[str] | None, RouteHandler]] = []

    def add_route(self, path: str, handler: RouteHandler, methods: Sequence[str] | None = None):
        """Adds a route to this router.

        Args:
            path: The path pattern for the route.
            handler: An async handler function.
            methods: A list of HTTP methods (e.g., ['GET', 'POST']). If None,
                allows all methods.
        """
        normalized_methods = frozenset(m.upper() for m in methods) if methods else None
        self._routes.append((path, normalized_methods, handler))

    def resolve_route(
        self, request_path: str, request_method: str
    ) -> tuple[RouteHandler, dict[str, str]] | None:
        """Finds a handler for the given path and method.

        Returns:
            A tuple of (handler_callable, path_parameters_dict) if a match is
            found, None if no route matches the path.

        Raises:
            HTTPMethodNotAllowedException: If routes match the path but none
                of them allows the method.
        """
        allowed_methods: set[str] = set()
        for path_pattern, methods, handler in self._routes:
            params = match_path(request_path, path_pattern)
            if params is None:
                continue

            if methods is None or request_method.upper() in methods:
                return handler, params

            allowed_methods.update(methods)

        if allowed_methods:
            raise HTTPMethodNotAllowedException(
                f"Method {request_method} not allowed for {request_path}",
                sorted(allowed_methods),
            )

        return None


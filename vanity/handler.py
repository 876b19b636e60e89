import logging

from vanity.rendering import render_go_get
from vanity.requests import Request
from vanity.resolver import MatcherRegistry
from vanity.responses import ResponseBuilder

logger = logging.getLogger(__name__)

GO_GET_PARAM = "go-get"


class GopkgHandler:
    """Answers requests for configured vanity import paths.

    A matching request carrying ``go-get=1`` gets the go-import/go-source
    metadata page. Any other matching request, typically a person following
    the import path in a browser, is redirected to the repository.

    Requests that match no import path raise :class:`NoMatchError` so the
    caller can hand them to the next handler.
    """

    def __init__(self, registry: MatcherRegistry):
        self._registry = registry

    async def serve(self, request: Request, response: ResponseBuilder) -> None:
        """Resolve ``request`` and write the redirect or metadata page.

        Raises:
            NoMatchError: If no configured import path matches.
            RenderError: If the metadata page cannot be rendered.
        """
        resolved = self._registry.resolve(request.host, request.path)

        if request.query_value(GO_GET_PARAM) != "1":
            logger.debug(f"Redirecting {request.path} to {resolved.uri}")
            response.redirect(
                resolved.uri,
                307,
                include_body=request.method in ("GET", "HEAD"),
            )
            return

        page = render_go_get(resolved)
        response.set_status(200)
        response.content_type("text/html")
        response.body(page)

import json
import logging
import traceback
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from bevy import Inject, injectable
from bevy.containers import Container
from jinja2 import Environment

from vanity.exceptions import (
    HTTPMethodNotAllowedException,
    HTTPNotFoundException,
    NoMatchError,
    VanityException,
)
from vanity.handler import GopkgHandler
from vanity.requests import Request
from vanity.responses import ResponseBuilder
from vanity.routing import Router

logger = logging.getLogger(__name__)

type Middleware = Callable[..., AsyncIterator[None]]
type ErrorHandler = Callable[..., Awaitable[None]]
type EmitCallback = Callable[..., Awaitable[None]]

ERROR_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<title>{{ status_code }} {{ error_title }}</title>
</head>
<body>
<h1>{{ status_code }} {{ error_title }}</h1>
<p>{{ error_message }}</p>
{% if show_details %}<pre>{{ traceback }}</pre>
{% endif %}</body>
</html>
"""

_error_page = Environment(autoescape=True).from_string(ERROR_PAGE_TEMPLATE)


class MiddlewareManager:
    """Runs the middleware stack around request dispatch and handles errors.

    Dispatch offers every request to the :class:`GopkgHandler` first. Requests
    that are not vanity import paths fall through to the per-request
    :class:`Router`, and to a 404 when no route matches either.

    Middleware are async generator functions that yield exactly once; code
    before the yield runs before dispatch and code after it runs while the
    stack unwinds in reverse order. An exception raised by dispatch is thrown
    into the middleware at its yield.

    Examples:
        ```python
        @injectable
        async def request_logger(request: Inject[Request]):
            logger.info(f"{request.method} {request.host}{request.path}")
            yield
        ```

    Args:
        dev_mode: Include exception details in error responses.
    """

    def __init__(self, dev_mode: bool = False):
        self._dev_mode = dev_mode
        self._middleware: list[tuple[Middleware, dict[str, Any]]] = []
        self._error_handlers: dict[type[Exception], ErrorHandler] = {}

        self._register_default_error_handlers()

    def _register_default_error_handlers(self):
        self.add_error_handler(HTTPNotFoundException, self._default_404_handler)
        self.add_error_handler(HTTPMethodNotAllowedException, self._default_405_handler)

    @property
    def dev_mode(self) -> bool:
        return self._dev_mode

    @dev_mode.setter
    def dev_mode(self, value: bool) -> None:
        self._dev_mode = value

    def add_middleware(self, middleware: Middleware, **config: Any):
        """Add middleware to the stack. Middleware run in the order added.

        Args:
            middleware: An async generator function that yields once.
            **config: Keyword arguments passed to the middleware on each call.
        """
        self._middleware.append((middleware, config))

    def add_error_handler(self, error_type: type[Exception], handler: ErrorHandler):
        """Register a handler for an exception type and its subclasses.

        The handler is called with the exception as its first argument; any
        other parameters are injected from the request container.
        """
        self._error_handlers[error_type] = handler

    def _render_error_page(self, context: dict[str, Any]) -> str:
        return _error_page.render(**context)

    def _write_error(
        self,
        response: ResponseBuilder,
        request: Request,
        *,
        status_code: int,
        title: str,
        message: str,
        error: Exception,
    ):
        response.set_status(status_code)
        accept_header = request.headers.get("accept", "")
        if "text/html" in accept_header:
            response.content_type("text/html")
            response.body(
                self._render_error_page(
                    {
                        "status_code": status_code,
                        "error_title": title,
                        "error_message": message,
                        "traceback": "".join(traceback.format_exception(error)),
                        "show_details": self._dev_mode,
                    }
                )
            )
        elif "application/json" in accept_header:
            response.content_type("application/json")
            error_data = {
                "status_code": status_code,
                "error": type(error).__name__,
                "message": message,
                "path": request.path,
                "method": request.method,
            }
            if self._dev_mode:
                error_data["traceback"] = traceback.format_exception(error)
            response.body(json.dumps(error_data))
        else:
            response.content_type("text/plain")
            response.body(f"{status_code} {title}: {message}")

    @injectable
    async def _default_error_handler(
        self,
        error: Exception,
        response: Inject[ResponseBuilder],
        request: Inject[Request],
    ):
        logger.exception("Unhandled exception", exc_info=error)

        status_code = error.status_code if isinstance(error, VanityException) else 500
        if self._dev_mode:
            message = f"{type(error).__name__}: {error}"
        else:
            message = "An unexpected error occurred."
        self._write_error(
            response,
            request,
            status_code=status_code,
            title="Error",
            message=message,
            error=error,
        )

    @injectable
    async def _default_404_handler(
        self,
        error: HTTPNotFoundException,
        response: Inject[ResponseBuilder],
        request: Inject[Request],
    ):
        self._write_error(
            response,
            request,
            status_code=HTTPNotFoundException.status_code,
            title="Not Found",
            message=f"The requested resource ({request.path}) was not found.",
            error=error,
        )

    @injectable
    async def _default_405_handler(
        self,
        error: HTTPMethodNotAllowedException,
        response: Inject[ResponseBuilder],
        request: Inject[Request],
    ):
        if error.allowed_methods:
            response.add_header("Allow", ", ".join(error.allowed_methods))

        self._write_error(
            response,
            request,
            status_code=HTTPMethodNotAllowedException.status_code,
            title="Method Not Allowed",
            message=error.message,
            error=error,
        )

    def _find_error_handler(self, error: Exception) -> ErrorHandler:
        handler = self._error_handlers.get(type(error))
        if handler:
            return handler

        for err_type, hnd in self._error_handlers.items():
            if isinstance(error, err_type):
                return hnd

        return self._default_error_handler

    async def run_error_handler(self, error: Exception, container: Container):
        """Execute the most specific error handler for ``error``.

        If a custom handler fails, the default handler answers instead so a
        response is always sent.
        """
        response_builder = container.get(ResponseBuilder)
        if not response_builder.headers_sent:
            response_builder.clear()

        handler = self._find_error_handler(error)
        try:
            await container.call(handler, error)
        except Exception as e:
            logger.exception("Critical error in error handling mechanism itself", exc_info=True)
            if handler == self._default_error_handler:
                raise

            e.__context__ = error
            if not response_builder.headers_sent:
                response_builder.clear()
            await container.call(self._default_error_handler, e)

    async def _dispatch(
        self,
        container: Container,
        request: Request,
        gopkg: GopkgHandler,
        emit_callback: EmitCallback,
    ):
        try:
            await gopkg.serve(request, container.get(ResponseBuilder))
            return
        except NoMatchError:
            logger.debug(f"{request.path} is not an import path, deferring to the router")

        router = container.get(Router)
        await emit_callback(
            "app.request.before_router",
            container=container,
            request=request,
            router=router,
        )

        error_to_propagate = None
        try:
            resolved_route = router.resolve_route(request.path, request.method)
            if not resolved_route:
                raise HTTPNotFoundException(
                    f"No route found for {request.method} {request.path}"
                )

            handler, path_params = resolved_route
            await container.call(handler, **path_params)
        except Exception as e:
            logger.info(f"Routing resulted in exception: {type(e).__name__}: {e}")
            error_to_propagate = e

        await emit_callback(
            "app.request.after_router",
            container=container,
            request=request,
            router=router,
            error=error_to_propagate,
        )

        if error_to_propagate:
            raise error_to_propagate

    async def run_middleware_stack(
        self,
        container: Container,
        request: Request,
        gopkg: GopkgHandler,
        emit_callback: EmitCallback,
    ):
        """Run the middleware, dispatch the request, then unwind the middleware.

        Raises:
            Exception: Any exception left unhandled by dispatch and middleware.
        """
        stack = []
        error_to_propagate = None

        for middleware, config in self._middleware:
            try:
                middleware_iterator = container.call(middleware, **config)
                await anext(middleware_iterator)
            except Exception as e:
                logger.exception(
                    f"Error during setup of middleware {getattr(middleware, '__name__', str(middleware))}",
                    exc_info=True,
                )
                error_to_propagate = e
                break
            else:
                stack.append(middleware_iterator)

        if not error_to_propagate:
            try:
                await self._dispatch(container, request, gopkg, emit_callback)
            except Exception as e:
                error_to_propagate = e

        for middleware_iterator in reversed(stack):
            thrown, error_to_propagate = error_to_propagate, None
            try:
                if thrown:
                    await middleware_iterator.athrow(thrown)
                else:
                    await anext(middleware_iterator)
            except StopAsyncIteration:
                pass
            except Exception as e:
                if e is not thrown:
                    logger.exception("Error during unwinding of middleware", exc_info=True)
                    if thrown:
                        e.__context__ = thrown
                error_to_propagate = e

        if error_to_propagate:
            raise error_to_propagate

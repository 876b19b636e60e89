import asyncio
import contextlib
import logging
from asyncio import Task, get_running_loop
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from typing import Any

from asgiref.typing import (
    ASGIReceiveCallable as Receive,
)
from asgiref.typing import (
    ASGISendCallable as Send,
)
from asgiref.typing import (
    LifespanShutdownCompleteEvent,
    LifespanStartupCompleteEvent,
    Scope,
)
from bevy import get_registry
from bevy.containers import Container

from vanity.config import (
    DEFAULT_CONFIG_FILE,
    VanityConfig,
    import_from_string,
    load_config,
    load_matchers,
)
from vanity.exceptions import VanityConfigError
from vanity.extensions import Listener
from vanity.handler import GopkgHandler
from vanity.middleware import MiddlewareManager
from vanity.requests import Request
from vanity.resolver import MatcherList, MatcherRegistry, ResolvedVars
from vanity.responses import ResponseBuilder
from vanity.routing import Router

logger = logging.getLogger(__name__)


class EventEmitter:
    """Delivers app events to every registered listener concurrently."""

    def __init__(self, listeners: list[Listener]):
        self.listeners = listeners

    def emit_sync(self, event: str, *, container: Container, **kwargs) -> Task:
        return get_running_loop().create_task(self.emit(event, container=container, **kwargs))

    async def emit(self, event: str, *, container: Container, **kwargs):
        async with asyncio.TaskGroup() as tg:
            for listener in self.listeners:
                tg.create_task(listener.on(event, container, **kwargs))


class App:
    """The ASGI application serving vanity import paths.

    Every request is first resolved against the configured ``gopkg`` import
    paths. A match is answered with the go-get metadata page (``?go-get=1``)
    or a 307 redirect to the repository; anything else falls through to the
    routes that listeners register on the per-request :class:`Router`.

    Examples:
        ```yaml
        # vanity.config.yaml
        site_info:
          name: example.com
        gopkg:
          - /chrisify https://github.com/zikes/chrisify
          - /myrepo hg https://bitbucket.org/zikes/myrepo
          - /github/$1/$2 https://github.com/$1/$2
        ```

        ```python
        app = App(config="vanity.config.yaml")
        uvicorn.run(app)
        ```
    """

    def __init__(
        self,
        *,
        config: str | Path = f"./{DEFAULT_CONFIG_FILE}",
        dev_mode: bool = False,
    ):
        """Initialize a new application.

        Args:
            config: Path to the YAML configuration file.
            dev_mode: Include exception details in error responses.

        Raises:
            VanityConfigError: If the configuration cannot be loaded, a gopkg
                directive is malformed (ConfigParseError) or a path template
                does not compile (PatternCompileError). No app is created from
                a bad configuration.
        """
        self._config_path = Path(config)
        self._config = load_config(self._config_path)
        self._dev_mode = dev_mode
        self._registry = get_registry()
        self._container = self._registry.create_container()
        self._async_exit_stack = contextlib.AsyncExitStack()

        self._matchers = MatcherRegistry(load_matchers(self._config))
        self._gopkg = GopkgHandler(self._matchers)
        self._middleware_manager = MiddlewareManager(dev_mode=dev_mode)

        self._listeners: list[Listener] = []
        self._emit = EventEmitter(self._listeners)

        self._init_container(self._container)
        self._init_middleware(self._config.get("middleware", []))

        logger.info(
            f"{self.site_name}: serving {len(self._matchers)} import path(s) "
            f"from {self._config_path}"
        )

    def _init_container(self, container: Container):
        container.add(App, self)
        container.add(MatcherRegistry, self._matchers)
        container.add(EventEmitter, self._emit)
        container.add(Container, container)

    def _init_middleware(self, middleware_config: list[dict[str, Any]]):
        for index, entry in enumerate(middleware_config):
            if not isinstance(entry, dict) or "entry" not in entry:
                raise VanityConfigError(f"Middleware #{index + 1} is missing required 'entry' field")

            middleware = import_from_string(entry["entry"])
            self.add_middleware(middleware, **entry.get("config", {}))
            logger.debug(f"Loaded middleware {entry['entry']}")

    @property
    def config(self) -> VanityConfig:
        return self._config

    @property
    def site_name(self) -> str:
        return self._config.get("site_info", {}).get("name", "vanity")

    @property
    def matchers(self) -> MatcherList:
        return self._matchers.snapshot

    @property
    def dev_mode(self) -> bool:
        return self._dev_mode

    @dev_mode.setter
    def dev_mode(self, value: bool) -> None:
        self._dev_mode = value
        self._middleware_manager.dev_mode = value

    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    def add_middleware(self, middleware: Callable[..., AsyncIterator[None]], **config: Any):
        self._middleware_manager.add_middleware(middleware, **config)

    def add_error_handler(
        self, error_type: type[Exception], handler: Callable[..., Awaitable[None]]
    ):
        self._middleware_manager.add_error_handler(error_type, handler)

    def resolve(self, host: str, path: str) -> ResolvedVars:
        """Resolve an import path against the current configuration.

        Raises:
            NoMatchError: If no configured import path matches.
        """
        return self._matchers.resolve(host, path)

    async def reload(self, config: str | Path | None = None) -> MatcherList:
        """Reload the gopkg import paths from the configuration file.

        The new matcher list is fully built before it replaces the old one. If
        loading fails the error propagates and the previous list stays live.

        Args:
            config: Optional path of a different configuration file.

        Returns:
            The newly published matcher list.
        """
        config_path = Path(config) if config is not None else self._config_path
        new_config = load_config(config_path)
        new_matchers = load_matchers(new_config)

        self._matchers.publish(new_matchers)
        self._config = new_config
        self._config_path = config_path
        logger.info(f"Reloaded {len(new_matchers)} import path(s) from {config_path}")

        await self.emit("app.config.reloaded", container=self._container, matchers=new_matchers)
        return new_matchers

    def emit_sync(self, event: str, *, container: Container, **kwargs) -> Task:
        return self._emit.emit_sync(event, container=container, **kwargs)

    async def emit(self, event: str, *, container: Container, **kwargs) -> None:
        await self._emit.emit(event, container=container, **kwargs)

    async def handle_lifespan(self, scope: Scope, receive: Receive, send: Send):
        async for event in self._lifespan_iterator(receive):
            match event:
                case {"type": "lifespan.startup"}:
                    logger.debug("Lifespan startup event")
                    await self.emit("app.startup", scope=scope, container=self._container)
                    await send(
                        LifespanStartupCompleteEvent(type="lifespan.startup.complete")
                    )

                case {"type": "lifespan.shutdown"}:
                    logger.debug("Lifespan shutdown event")
                    await self.emit("app.shutdown", scope=scope, container=self._container)
                    await self._async_exit_stack.aclose()
                    await send(
                        LifespanShutdownCompleteEvent(type="lifespan.shutdown.complete")
                    )

    async def _lifespan_iterator(self, receive: Receive):
        event = {}
        while event.get("type") != "lifespan.shutdown":
            event = await receive()
            yield event

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        match scope["type"]:
            case "lifespan":
                await self.handle_lifespan(scope, receive, send)
            case "http":
                await self._handle_request(scope, receive, send)
            case _:
                logger.warning(f"Unsupported ASGI scope type: {scope['type']}")

    def _create_request_container(
        self, request: Request, response_builder: ResponseBuilder
    ) -> Container:
        # Branched containers do not see their parent's instances, so every
        # request gets a complete container of its own.
        container = self._registry.create_container()
        self._init_container(container)
        container.add(Request, request)
        container.add(ResponseBuilder, response_builder)
        container.add(Router, Router())
        return container

    async def _handle_request(self, scope: Scope, receive: Receive, send: Send):
        request = Request(scope, receive)
        response_builder = ResponseBuilder(send)
        container = self._create_request_container(request, response_builder)

        error_to_propagate = None
        try:
            await self.emit("app.request.begin", container=container, request=request)

            try:
                await self._middleware_manager.run_middleware_stack(
                    container=container,
                    request=request,
                    gopkg=self._gopkg,
                    emit_callback=self.emit,
                )
            except Exception as e:
                error_to_propagate = e

            if error_to_propagate:
                await self._middleware_manager.run_error_handler(error_to_propagate, container)

            await self.emit(
                "app.request.end",
                container=container,
                request=request,
                error=error_to_propagate,
            )

        except Exception as e:
            logger.exception("Unhandled exception during request processing", exc_info=e)
            await self._middleware_manager.run_error_handler(e, container)

        finally:
            try:
                await response_builder.send_response()
            except Exception as final_send_exc:
                logger.error("Exception during final send_response", exc_info=final_send_exc)

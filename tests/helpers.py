"""
Helper utilities for tests.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from bevy import Inject, injectable
from bevy.containers import Container

from vanity.app import App
from vanity.extensions import Listener
from vanity.responses import ResponseBuilder
from vanity.routing import Router


class RouteAddingListener(Listener):
    """Registers one fallback route on every request."""

    def __init__(
        self,
        path: str,
        handler: Callable[..., Awaitable[None]],
        methods: list[str] | None = None,
    ):
        self.path = path
        self.handler = handler
        self.methods = methods
        self.was_called = 0
        self.received_kwargs = None

    @injectable
    async def on_app_request_begin(self, router: Inject[Router], container: Inject[Container]):
        async def handler_wrapper(**path_params):
            self.was_called += 1
            self.received_kwargs = dict(path_params)
            await container.call(self.handler, **path_params)

        router.add_route(self.path, handler_wrapper, methods=self.methods)


class EventWatcherListener(Listener):
    def __init__(self):
        self.events_seen = []

    async def on(self, event_name: str, container: Container, **kwargs: Any) -> None:
        self.events_seen.append((event_name, kwargs))

    @property
    def event_names(self) -> list[str]:
        return [name for name, _ in self.events_seen]


@injectable
async def healthz_handler(response: Inject[ResponseBuilder]):
    response.content_type("text/plain")
    response.body("ok")


# Middleware are async generator functions that yield once
@injectable
async def example_header_middleware(response: Inject[ResponseBuilder]):
    response.add_header("X-Test-Middleware-Before", "active")
    yield
    response.add_header("X-Test-Middleware-After", "active")


@injectable
async def tagging_middleware(response: Inject[ResponseBuilder], tag: str = "default"):
    yield
    response.add_header("X-Tag", tag)


@injectable
async def app_tag_middleware(response: Inject[ResponseBuilder]):
    yield
    response.add_header("X-App", "recording")


class RecordingApp(App):
    """An App subclass loadable through ``--app``."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.add_middleware(app_tag_middleware)

"""Defines a base type that can observe events happening in the vanity app. Handlers are defined as methods on the class
with names following the format '[optional_]on_{event_name}'. This gives the author the ability to make readable
function names like 'log_on_config_reloaded' or 'add_routes_on_app_request_begin'."""

import re
from collections import defaultdict
from inspect import Parameter, isawaitable, signature
from typing import Any

from bevy.containers import Container

type ListenerMapping = dict[str, list[str]]


def _accepted_kwargs(callback, kwargs: dict[str, Any]) -> dict[str, Any]:
    parameters = signature(callback).parameters.values()
    if any(p.kind is Parameter.VAR_KEYWORD for p in parameters):
        return kwargs

    names = {p.name for p in parameters}
    return {name: value for name, value in kwargs.items() if name in names}


class Listener:
    """Base class for vanity event listeners.

    Listener classes register event handlers based on method names following
    the pattern `on_{event_name}` or `{prefix}_on_{event_name}`.

    Events emitted by the app:
    - `app_startup` / `app_shutdown`: ASGI lifespan
    - `app_request_begin` / `app_request_end`: around every request
    - `app_request_before_router` / `app_request_after_router`: around the
      fallback router, only for requests that are not import paths
    - `app_config_reloaded`: a new set of import paths was published

    Examples:
        Serve a health check for paths that are not import paths:

        ```python
        class HealthListener(Listener):
            @injectable
            async def on_app_request_begin(self, router: Inject[Router]):
                router.add_route("/healthz", self.healthz, ["GET"])

            @injectable
            async def healthz(self, response: Inject[ResponseBuilder]):
                response.body("ok")
        ```

    Handlers receive the keyword arguments of the event that they name in
    their signature; everything else is resolved from the container.
    """

    __listeners__: ListenerMapping

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        cls.__listeners__ = defaultdict(list)

        for name in dir(cls):
            if name.startswith("_"):
                continue

            event = re.match(r"^(?:.+_)?on_(.*)$", name)
            if not event:
                continue

            callback = getattr(cls, name)
            if not callable(callback):
                continue

            event_name = event.group(1)
            cls.__listeners__[event_name].append(name)

    async def on(self, event_name: str, container: Container, **kwargs: Any) -> None:
        """Receives event notifications.

        Args:
            event_name: The name of the event that occurred, e.g. "app.startup".
            container: The container used to resolve handler dependencies.
            **kwargs: Arbitrary keyword arguments associated with the event.
        """
        event_name = re.sub(r"[^a-z0-9]+", "_", event_name.lower())
        for handler_name in self.__listeners__.get(event_name, []):
            callback = getattr(self, handler_name)
            result = container.call(callback, **_accepted_kwargs(callback, kwargs))
            if isawaitable(result):
                await result

import pytest
from bevy import Inject, injectable
from httpx import ASGITransport, AsyncClient

from tests.helpers import example_header_middleware
from vanity.app import App
from vanity.exceptions import HTTPNotFoundException
from vanity.requests import Request
from vanity.responses import ResponseBuilder


@pytest.mark.asyncio
async def test_middleware_wraps_gopkg_responses(app, client):
    app.add_middleware(example_header_middleware)

    response = await client.get("/chrisify")
    assert response.status_code == 307
    assert response.headers["x-test-middleware-before"] == "active"
    assert response.headers["x-test-middleware-after"] == "active"


@pytest.mark.asyncio
async def test_middleware_order(app, client):
    calls = []

    def make_middleware(name):
        @injectable
        async def middleware(request: Inject[Request]):
            calls.append(f"{name} enter {request.path}")
            yield
            calls.append(f"{name} exit")

        return middleware

    app.add_middleware(make_middleware("outer"))
    app.add_middleware(make_middleware("inner"))

    await client.get("/chrisify")
    assert calls == [
        "outer enter /chrisify",
        "inner enter /chrisify",
        "inner exit",
        "outer exit",
    ]


@pytest.mark.asyncio
async def test_middleware_sees_dispatch_errors(app, client):
    seen = []

    async def observing_middleware():
        try:
            yield
        except HTTPNotFoundException as e:
            seen.append(e)
            raise

    app.add_middleware(observing_middleware)

    response = await client.get("/unknown")
    assert response.status_code == 404
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_middleware_can_handle_errors(app, client):
    @injectable
    async def fallback_middleware(response: Inject[ResponseBuilder]):
        try:
            yield
        except HTTPNotFoundException:
            response.set_status(410)
            response.body("gone")

    app.add_middleware(fallback_middleware)

    response = await client.get("/unknown")
    assert response.status_code == 410
    assert response.text == "gone"


@pytest.mark.asyncio
async def test_middleware_setup_failure_is_server_error(app, client):
    async def failing_middleware():
        raise RuntimeError("setup failed")
        yield

    app.add_middleware(failing_middleware)

    response = await client.get("/chrisify")
    assert response.status_code == 500
    assert "setup failed" in response.text


@pytest.mark.asyncio
async def test_middleware_from_config(write_config):
    config_path = write_config(
        """
        gopkg:
          - /chrisify https://github.com/zikes/chrisify
        middleware:
          - entry: tests.helpers:tagging_middleware
            config:
              tag: configured
        """
    )
    app = App(config=config_path)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://example.com") as client:
        response = await client.get("/chrisify")

    assert response.headers["x-tag"] == "configured"

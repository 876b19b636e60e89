import json

import pytest
from bevy import Inject, injectable

import vanity.handler
from tests.helpers import RouteAddingListener
from vanity.exceptions import RenderError, VanityException
from vanity.responses import ResponseBuilder


class TeapotError(VanityException):
    status_code = 418


@injectable
async def raising_handler():
    raise TeapotError("short and stout")


@pytest.mark.asyncio
async def test_custom_error_handler(app, client):
    @injectable
    async def teapot_handler(error: TeapotError, response: Inject[ResponseBuilder]):
        response.set_status(error.status_code)
        response.body(f"handled: {error.message}")

    app.add_error_handler(TeapotError, teapot_handler)
    app.add_listener(RouteAddingListener("/brew", raising_handler))

    response = await client.get("/brew")
    assert response.status_code == 418
    assert response.text == "handled: short and stout"


@pytest.mark.asyncio
async def test_error_handler_matches_subclasses(app, client):
    @injectable
    async def base_handler(error: VanityException, response: Inject[ResponseBuilder]):
        response.set_status(409)
        response.body(type(error).__name__)

    app.add_error_handler(VanityException, base_handler)
    app.add_listener(RouteAddingListener("/brew", raising_handler))

    response = await client.get("/brew")
    assert response.status_code == 409
    assert response.text == "TeapotError"


@pytest.mark.asyncio
async def test_failing_error_handler_falls_back_to_default(app, client):
    @injectable
    async def broken_handler(error: TeapotError):
        raise RuntimeError("handler exploded")

    app.add_error_handler(TeapotError, broken_handler)
    app.add_listener(RouteAddingListener("/brew", raising_handler))

    response = await client.get("/brew")
    assert response.status_code == 500
    assert "RuntimeError: handler exploded" in response.text


@pytest.mark.asyncio
async def test_default_handler_uses_exception_status(client, app):
    app.add_listener(RouteAddingListener("/brew", raising_handler))

    response = await client.get("/brew")
    assert response.status_code == 418
    assert "TeapotError: short and stout" in response.text


@pytest.mark.asyncio
async def test_details_hidden_outside_dev_mode(client, app):
    app.dev_mode = False
    app.add_listener(RouteAddingListener("/brew", raising_handler))

    response = await client.get("/brew")
    assert response.status_code == 418
    assert "short and stout" not in response.text
    assert "An unexpected error occurred." in response.text


@pytest.mark.asyncio
async def test_render_failure_is_server_error(client, monkeypatch):
    def broken_render(resolved):
        raise RenderError(f"cannot render {resolved.import_path}")

    monkeypatch.setattr(vanity.handler, "render_go_get", broken_render)

    response = await client.get("/chrisify?go-get=1")
    assert response.status_code == 500
    assert "cannot render example.com/chrisify" in response.text


@pytest.mark.asyncio
async def test_render_failure_does_not_affect_redirects(client, monkeypatch):
    def broken_render(resolved):
        raise RenderError("unreachable")

    monkeypatch.setattr(vanity.handler, "render_go_get", broken_render)

    response = await client.get("/chrisify")
    assert response.status_code == 307


@pytest.mark.asyncio
async def test_not_found_as_json(client):
    response = await client.get("/unknown", headers={"Accept": "application/json"})
    assert response.status_code == 404
    assert response.headers["content-type"] == "application/json; charset=utf-8"
    data = json.loads(response.text)
    assert data["status_code"] == 404
    assert data["error"] == "HTTPNotFoundException"
    assert data["path"] == "/unknown"
    assert data["method"] == "GET"


@pytest.mark.asyncio
async def test_not_found_as_html(client):
    response = await client.get("/unknown", headers={"Accept": "text/html"})
    assert response.status_code == 404
    assert response.headers["content-type"] == "text/html; charset=utf-8"
    assert "<h1>404 Not Found</h1>" in response.text

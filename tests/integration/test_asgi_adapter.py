"""Integration tests for the ASGI host.

Drives full apps through starlette's TestClient, verifying:
- Event handler return values reach the client
- Wrapped listeners and middleware share one response
- Error responses (404, unhandled, debug, custom on_error)
- Response lifecycle notifications ("finish", "close")
"""

from __future__ import annotations

import json

import pytest
from starlette.testclient import TestClient

from handler_bridge.app import App, AppOptions
from handler_bridge.asgi import create_asgi_app, to_asgi_app
from handler_bridge.errors import HTTPError
from handler_bridge.event import event_handler
from handler_bridge.node import from_node_middleware

pytestmark = pytest.mark.integration


def _client(app: App) -> TestClient:
    return TestClient(create_asgi_app(app))


# =============================================================================
# Tests: Successful responses
# =============================================================================


class TestResponses:
    """Values and listeners producing responses."""

    def test_event_handler_string(self):
        app = App().use(event_handler(lambda event: "hello"))

        response = _client(app).get("/")

        assert response.status_code == 200
        assert response.text == "hello"
        assert response.headers["content-type"] == "text/html"

    def test_event_handler_json_echoes_request(self):
        @event_handler
        async def echo(event):
            req = event.node.req
            return {
                "method": req.method,
                "path": req.path,
                "query": req.query,
                "body": req.body.decode(),
                "agent": req.headers.get("x-agent"),
            }

        response = _client(App().use(echo)).post(
            "/items?page=2", content=b"payload", headers={"X-Agent": "tests"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "method": "POST",
            "path": "/items",
            "query": {"page": "2"},
            "body": "payload",
            "agent": "tests",
        }

    def test_listener_writes_response(self):
        def listener(req, res):
            res.status_code = 201
            res.set_header("content-type", "text/plain")
            res.write("created ")
            res.end(req.method)

        response = _client(App().use(from_node_middleware(listener))).put("/thing")

        assert response.status_code == 201
        assert response.text == "created PUT"
        assert response.headers["content-length"] == str(len("created PUT"))

    def test_middleware_then_event_handler(self):
        def add_header(req, res, next):
            res.set_header("x-powered-by", "handler-bridge")
            next()

        app = App()
        app.use(from_node_middleware(add_header))
        app.use(event_handler(lambda event: {"ok": True}))

        response = _client(app).get("/")

        assert response.headers["x-powered-by"] == "handler-bridge"
        assert response.json() == {"ok": True}


# =============================================================================
# Tests: Error responses
# =============================================================================


class TestErrors:
    """Failures turned into client responses."""

    def test_empty_app_returns_404(self):
        response = _client(App()).get("/missing")

        assert response.status_code == 404
        body = response.json()
        assert body["status_code"] == 404
        assert body["stack"] == []

    def test_unhandled_failure_returns_500(self):
        @event_handler
        async def boom(event):
            raise RuntimeError("boom")

        response = _client(App().use(boom)).get("/")

        assert response.status_code == 500
        assert response.json()["stack"] == []

    def test_debug_returns_stack(self):
        @event_handler
        async def boom(event):
            raise RuntimeError("boom")

        response = _client(App(AppOptions(debug=True)).use(boom)).get("/")

        assert any("boom" in line for line in response.json()["stack"])

    def test_middleware_error_keeps_status_and_data(self):
        def auth(req, res, next):
            if "authorization" not in req.headers:
                next(HTTPError("login", status_code=401, data={"realm": "api"}))
            else:
                next()

        app = App()
        app.use(from_node_middleware(auth))
        app.use(event_handler(lambda event: "secret"))
        client = _client(app)

        denied = client.get("/")
        allowed = client.get("/", headers={"Authorization": "Bearer x"})

        assert denied.status_code == 401
        assert denied.json()["data"] == {"realm": "api"}
        assert allowed.text == "secret"

    def test_failure_after_partial_write_ends_response(self):
        @event_handler
        async def partial(event):
            event.node.res.write("partial")
            raise RuntimeError("late failure")

        response = _client(App().use(partial)).get("/")

        assert response.status_code == 200
        assert response.text == "partial"

    def test_custom_on_error(self):
        seen = []

        async def on_error(error, event):
            seen.append(error)
            event.node.res.status_code = 418
            event.node.res.end("teapot")

        @event_handler
        async def boom(event):
            raise ValueError("bad")

        response = _client(App(AppOptions(on_error=on_error)).use(boom)).get("/")

        assert response.status_code == 418
        assert response.text == "teapot"
        assert seen[0].unhandled is True


# =============================================================================
# Tests: Lifecycle
# =============================================================================


class TestLifecycle:
    """Response notifications emitted by the host."""

    def test_finish_then_close(self):
        events: list[str] = []

        def listener(req, res):
            res.on("finish", lambda: events.append("finish"))
            res.on("close", lambda: events.append("close"))
            res.end("bye")

        response = TestClient(to_asgi_app(listener)).get("/")

        assert response.text == "bye"
        assert events == ["finish", "close"]

    def test_async_listener_is_awaited(self):
        async def listener(req, res):
            res.set_header("content-type", "application/json")
            res.end(json.dumps({"async": True}))

        response = TestClient(to_asgi_app(listener)).get("/")

        assert response.json() == {"async": True}

    def test_lifespan_is_acknowledged(self):
        with TestClient(create_asgi_app(App().use(event_handler(lambda e: "up")))) as client:
            assert client.get("/").text == "up"

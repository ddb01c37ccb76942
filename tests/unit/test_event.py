"""Tests for HTTPEvent and the host message objects."""

from __future__ import annotations

import pytest

from handler_bridge.event import (
    HTTPEvent,
    create_event,
    event_handler,
    is_event,
    is_event_handler,
)
from handler_bridge.messages import IncomingMessage, ServerResponse


class TestHTTPEvent:
    """Event wrapping of the request/response pair."""

    def test_create_event_wraps_pair(self, req, res):
        event = create_event(req, res)

        assert isinstance(event, HTTPEvent)
        assert event.node.req is req
        assert event.node.res is res
        assert event.context == {}

    def test_create_event_has_no_side_effects(self, req, res):
        create_event(req, res)

        assert res.writable_ended is False
        assert res.headers_sent is False
        assert res.listener_count("close") == 0

    def test_method_and_path(self, req, res):
        event = create_event(req, res)

        assert event.method == "GET"
        assert event.path == "/hello"

    def test_handled_follows_response_state(self, req, res):
        event = create_event(req, res)
        assert event.handled is False

        res.write("partial")
        assert event.handled is True

    def test_mark_handled(self, req, res):
        event = create_event(req, res)

        event.mark_handled()

        assert event.handled is True

    def test_is_event(self, req, res):
        assert is_event(create_event(req, res))
        assert not is_event(object())


class TestEventHandlerMarker:
    """event_handler() and is_event_handler()."""

    def test_marks_function(self):
        async def handler(event):
            return "ok"

        assert not is_event_handler(handler)
        assert event_handler(handler) is handler
        assert is_event_handler(handler)

    def test_marking_is_idempotent(self):
        handler = event_handler(event_handler(lambda event: None))

        assert is_event_handler(handler)

    def test_bound_method_is_wrapped(self):
        class Handlers:
            async def hello(self, event):
                return "hello"

        handlers = Handlers()
        marked = event_handler(handlers.hello)

        assert is_event_handler(marked)
        assert marked.__wrapped__ == handlers.hello
        assert marked.__name__ == "hello"

    def test_non_callables_are_never_handlers(self):
        class Marked:
            __is_handler__ = True

        assert not is_event_handler(Marked())
        assert not is_event_handler(None)


class TestMessages:
    """IncomingMessage and ServerResponse behavior."""

    def test_request_fields(self):
        req = IncomingMessage(method="post", url="/items?page=2", headers={"X-Token": "abc"})

        assert req.method == "POST"
        assert req.path == "/items"
        assert req.query == {"page": "2"}
        assert req.headers["x-token"] == "abc"

    def test_end_emits_finish_once(self, res):
        finished: list[bool] = []
        res.on("finish", lambda: finished.append(True))

        res.end("a")
        res.end("b")

        assert finished == [True]
        assert res.body == b"a"
        assert res.writable_ended is True

    def test_write_after_end_raises(self, res):
        res.end()

        with pytest.raises(RuntimeError, match="write after end"):
            res.write("late")

    def test_headers_locked_after_write(self, res):
        res.set_header("Content-Type", "text/plain")
        res.write("body")

        assert res.get_header("content-type") == "text/plain"
        with pytest.raises(RuntimeError, match="after headers are sent"):
            res.set_header("X-Late", "1")

    def test_remove_header(self, res):
        res.set_header("X-A", 1)
        res.remove_header("x-a")

        assert res.get_headers() == {}

    @pytest.mark.asyncio
    async def test_wait_for_end(self):
        res = ServerResponse()
        res.end("done")

        await res.wait_for_end()

        assert res.body == b"done"

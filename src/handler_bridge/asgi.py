"""ASGI host for host-style listeners.

Each HTTP request becomes an IncomingMessage/ServerResponse pair. The
listener runs, the response is flushed once ended, then "close" is emitted
on it ("error" first when flushing fails).
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING

from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from .messages import IncomingMessage, ServerResponse
from .node import NodeListener, to_node_listener

if TYPE_CHECKING:
    from .app import App

logger = logging.getLogger(__name__)


async def _build_request(scope: Scope, receive: Receive) -> IncomingMessage:
    request = Request(scope, receive)
    body = await request.body()
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return IncomingMessage(
        method=request.method,
        url=url,
        headers=dict(request.headers.items()),
        body=body,
    )


async def _flush(res: ServerResponse, send: Send) -> None:
    body = res.body
    headers = list(res.headers.raw)
    if "content-length" not in res.headers:
        headers.append((b"content-length", str(len(body)).encode("latin-1")))
    await send(
        {
            "type": "http.response.start",
            "status": res.status_code,
            "headers": headers,
        }
    )
    await send({"type": "http.response.body", "body": body})


async def _lifespan(receive: Receive, send: Send) -> None:
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await send({"type": "lifespan.shutdown.complete"})
            return


def to_asgi_app(listener: NodeListener) -> ASGIApp:
    """Serve a ``(req, res)`` listener as an ASGI application.

    The listener may be synchronous or a coroutine function. The response
    is only flushed after ``res.end()``; a listener that never ends its
    response keeps the request open.
    """

    async def asgi_app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await _lifespan(receive, send)
            return
        if scope["type"] != "http":
            raise RuntimeError(f"Unsupported ASGI scope type: {scope['type']}")

        req = await _build_request(scope, receive)
        res = ServerResponse(req)

        result = listener(req, res)
        if inspect.isawaitable(result):
            await result
        await res.wait_for_end()

        try:
            await _flush(res, send)
        except Exception as e:
            logger.warning(f"Failed to send response for {req!r}: {e}")
            res.emit("error", e)
            raise
        finally:
            res.emit("close")

    return asgi_app


def create_asgi_app(app: App) -> ASGIApp:
    """Serve an :class:`App` through its root host listener."""
    return to_asgi_app(to_node_listener(app))

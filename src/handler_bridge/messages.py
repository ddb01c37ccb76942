"""Host request/response objects.

These are the "listener" side of the bridge: plain objects a host server
hands to ``(req, res)`` listeners and ``(req, res, next)`` middleware.
The ASGI host in :mod:`handler_bridge.asgi` builds them per request; tests
build them directly.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from urllib.parse import parse_qsl, urlsplit

from starlette.datastructures import Headers, MutableHeaders

from .emitter import EventEmitter

ENCODING = "utf-8"


class IncomingMessage(EventEmitter):
    """An incoming HTTP request with its body already read."""

    def __init__(
        self,
        method: str = "GET",
        url: str = "/",
        headers: Mapping[str, str] | None = None,
        body: bytes = b"",
    ) -> None:
        super().__init__()
        self.method = method.upper()
        self.url = url
        self.headers = Headers(headers=dict(headers or {}))
        self.body = body

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def query(self) -> dict[str, str]:
        return dict(parse_qsl(urlsplit(self.url).query))

    def __repr__(self) -> str:
        return f"IncomingMessage({self.method} {self.url})"


class ServerResponse(EventEmitter):
    """A buffered outgoing HTTP response.

    Lifecycle notifications:
    - "finish": emitted by ``end()`` once the body is complete
    - "close": emitted by the host after the response was flushed
    - "error": emitted by the host when flushing failed
    """

    def __init__(self, req: IncomingMessage | None = None) -> None:
        super().__init__()
        self.req = req
        self.status_code = 200
        self.status_message: str | None = None
        self.headers = MutableHeaders()
        self.headers_sent = False
        self.writable_ended = False
        self._chunks: list[bytes] = []
        self._ended = asyncio.Event()

    # =========================================================================
    # Headers
    # =========================================================================

    def set_header(self, name: str, value: str | int) -> ServerResponse:
        if self.headers_sent:
            raise RuntimeError(f"Cannot set header {name!r} after headers are sent")
        self.headers[name] = str(value)
        return self

    def get_header(self, name: str) -> str | None:
        return self.headers.get(name)

    def remove_header(self, name: str) -> None:
        if self.headers_sent:
            raise RuntimeError(f"Cannot remove header {name!r} after headers are sent")
        if name in self.headers:
            del self.headers[name]

    def get_headers(self) -> dict[str, str]:
        return dict(self.headers.items())

    # =========================================================================
    # Body
    # =========================================================================

    def write(self, chunk: str | bytes) -> bool:
        """Append a chunk to the body. Headers are considered sent afterwards."""
        if self.writable_ended:
            raise RuntimeError("write after end")
        if isinstance(chunk, str):
            chunk = chunk.encode(ENCODING)
        self._chunks.append(chunk)
        self.headers_sent = True
        return True

    def end(self, chunk: str | bytes | None = None) -> ServerResponse:
        """Finish the response. Calling ``end`` again is a no-op."""
        if self.writable_ended:
            return self
        if chunk is not None:
            self.write(chunk)
        self.writable_ended = True
        self.headers_sent = True
        self._ended.set()
        self.emit("finish")
        return self

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    async def wait_for_end(self) -> None:
        """Block until ``end()`` has been called."""
        await self._ended.wait()

    def __repr__(self) -> str:
        state = "ended" if self.writable_ended else "open"
        return f"ServerResponse({self.status_code}, {state})"

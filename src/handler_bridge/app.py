"""Application: an ordered stack of event handlers behind one root handler.

Usage:
    app = create_app(debug=True)
    app.use(from_node_middleware(cors_middleware))
    app.use(hello)

    listener = to_node_listener(app)     # (req, res) host listener
    asgi_app = to_asgi_app(listener)     # serve with uvicorn

There is no routing: every layer sees every request until one handles it.
"""

from __future__ import annotations

import inspect
import json
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .errors import HTTPError, create_error
from .event import EventHandler, HTTPEvent, event_handler, is_event_handler

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[HTTPError, HTTPEvent], Awaitable[None] | None]

# Environment switch for AppOptions.from_env()
DEBUG_ENV_VAR = "HANDLER_BRIDGE_DEBUG"

MIME_HTML = "text/html"
MIME_JSON = "application/json"


@dataclass
class AppOptions:
    """Application configuration.

    Attributes:
        debug: Include tracebacks in error responses
        on_error: Replaces the default error response when set; called with
            the normalized error and the event
    """

    debug: bool = False
    on_error: ErrorCallback | None = None

    @classmethod
    def from_env(cls, **overrides: Any) -> AppOptions:
        """Build options from environment variables, then apply ``overrides``."""
        debug = os.environ.get(DEBUG_ENV_VAR, "").lower() in ("1", "true", "yes")
        options = cls(debug=debug)
        for key, value in overrides.items():
            if not hasattr(options, key):
                raise ValueError(f"Unknown app option: {key}")
            setattr(options, key, value)
        return options


class App:
    """Runs its handler stack in order for every event."""

    def __init__(self, options: AppOptions | None = None) -> None:
        self.options = options or AppOptions()
        self.stack: list[EventHandler] = []

    def use(self, handler: EventHandler | Callable[[HTTPEvent], Any]) -> App:
        """Append an event handler to the stack.

        Plain callables are marked as event handlers. Host-style listeners
        and middleware must be wrapped with ``from_node_middleware`` first.
        """
        if not callable(handler):
            raise TypeError(f"App.use() expects a callable, got {handler!r}")
        if not is_event_handler(handler):
            logger.warning(
                f"Implicit event handler conversion for {handler!r}; "
                "use event_handler() or from_node_middleware()"
            )
            handler = event_handler(handler)
        self.stack.append(handler)
        return self

    async def handler(self, event: HTTPEvent) -> None:
        """Root event handler.

        Raises:
            HTTPError: 404 when no layer handled the event, or whatever a
                layer raised
        """
        for layer in self.stack:
            value = layer(event)
            if inspect.isawaitable(value):
                value = await value

            if event.handled:
                return
            if value is not None:
                _send_value(event, value, self.options.debug)
                return

        raise HTTPError(
            f"Cannot find any handler for {event.path}",
            status_code=404,
            status_message=f"Cannot find any handler for {event.path}",
        )

    def __repr__(self) -> str:
        return f"App(layers={len(self.stack)}, debug={self.options.debug})"


def _send_value(event: HTTPEvent, value: Any, debug: bool) -> None:
    """Write a layer's return value as the response body."""
    if isinstance(value, BaseException):
        raise create_error(value)

    res = event.node.res
    if isinstance(value, str):
        res.set_header("content-type", MIME_HTML)
        res.end(value)
    elif isinstance(value, (bytes, bytearray)):
        res.end(bytes(value))
    else:
        res.set_header("content-type", MIME_JSON)
        res.end(json.dumps(value, indent=2 if debug else None, default=str))


def create_app(options: AppOptions | None = None, **kwargs: Any) -> App:
    """Create an application.

    Args:
        options: Explicit options; when omitted, options are read from the
            environment and ``kwargs`` override them
    """
    if options is None:
        options = AppOptions.from_env(**kwargs)
    elif kwargs:
        raise ValueError("Pass either options or keyword overrides, not both")
    return App(options)

"""The HTTP event: one object per request wrapping the host req/res pair."""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from .messages import IncomingMessage, ServerResponse

EventHandler = Callable[["HTTPEvent"], Awaitable[Any]]

F = TypeVar("F", bound=Callable[..., Any])

# Attribute that marks a callable as an event handler
HANDLER_MARKER = "__is_handler__"


@dataclass(frozen=True)
class NodeContext:
    """The host request/response pair carried by an event."""

    req: IncomingMessage
    res: ServerResponse


class HTTPEvent:
    """Per-request event passed to event handlers.

    Attributes:
        node: The wrapped host request/response pair
        context: Free-form per-request storage for handlers
    """

    __is_event__ = True

    def __init__(self, req: IncomingMessage, res: ServerResponse) -> None:
        self.node = NodeContext(req=req, res=res)
        self.context: dict[str, Any] = {}
        self._handled = False

    @property
    def method(self) -> str:
        return self.node.req.method

    @property
    def path(self) -> str:
        return self.node.req.path

    @property
    def handled(self) -> bool:
        """True once a response was (or is being) sent for this event."""
        res = self.node.res
        return self._handled or res.writable_ended or res.headers_sent

    def mark_handled(self) -> None:
        self._handled = True

    def __repr__(self) -> str:
        return f"[{self.method}] {self.node.req.url}"


def create_event(req: IncomingMessage, res: ServerResponse) -> HTTPEvent:
    return HTTPEvent(req, res)


def tag_callable(handler: F, name: str, value: Any) -> F:
    """Set attribute ``name`` on ``handler``, wrapping it when it rejects attributes.

    Bound methods and some builtins cannot carry attributes; they are wrapped
    in a plain function that keeps their signature.
    """
    try:
        setattr(handler, name, value)
        return handler
    except AttributeError:
        pass

    @functools.wraps(handler)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return handler(*args, **kwargs)

    setattr(wrapper, name, value)
    return wrapper  # type: ignore[return-value]


def is_event(value: Any) -> bool:
    return getattr(value, "__is_event__", False) is True


def event_handler(handler: F) -> F:
    """Mark ``handler`` as an event handler.

    Usage:
        @event_handler
        async def hello(event):
            return "hello"
    """
    return tag_callable(handler, HANDLER_MARKER, True)


def is_event_handler(value: Any) -> bool:
    return callable(value) and getattr(value, HANDLER_MARKER, False) is True

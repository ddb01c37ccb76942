"""Bridge between host listeners/middleware and event handlers.

Two calling conventions meet here:

- host style: ``listener(req, res)`` or ``middleware(req, res, next)``,
  completion signaled by ending the response, calling ``next`` or returning
  a value
- event style: ``handler(event)`` returning an awaitable

Conversions:
    from_node_middleware(handler)     host style -> event handler
    to_node_listener(app)             app (event style) -> host listener
    promisify_node_listener(handler)  host style -> (req, res) -> awaitable
    call_node_listener(handler, ...)  run a host-style handler to one settled future
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from .errors import HTTPError, HTTPTypeError, create_error, send_error
from .event import (
    EventHandler,
    HTTPEvent,
    create_event,
    event_handler,
    is_event_handler,
    tag_callable,
)
from .messages import IncomingMessage, ServerResponse

if TYPE_CHECKING:
    from .app import App

logger = logging.getLogger(__name__)

NextFunction = Callable[..., None]
NodeListener = Callable[[IncomingMessage, ServerResponse], Any]
NodeMiddleware = Callable[[IncomingMessage, ServerResponse, NextFunction], Any]
NodePromisifiedHandler = Callable[[IncomingMessage, ServerResponse], Awaitable[Any]]
NodeHandle = Callable[[IncomingMessage, ServerResponse], Awaitable[None]]

H = TypeVar("H", bound=Callable[..., Any])

# Attribute holding an explicit HandlerKind set by define_node_*()
KIND_MARKER = "__node_handler_kind__"


class HandlerKind(str, Enum):
    """How a host-style handler signals completion."""

    LISTENER = "listener"  # by ending the response, or by returning
    MIDDLEWARE = "middleware"  # by calling next(), or by returning a value


def define_node_listener(handler: H) -> H:
    """Tag ``handler`` as a ``(req, res)`` listener."""
    return tag_callable(handler, KIND_MARKER, HandlerKind.LISTENER)


def define_node_middleware(handler: H) -> H:
    """Tag ``handler`` as a ``(req, res, next)`` middleware."""
    return tag_callable(handler, KIND_MARKER, HandlerKind.MIDDLEWARE)


def _signature_shape(handler: Callable[..., Any]) -> tuple[list[inspect.Parameter], bool] | None:
    """Positional parameters of ``handler`` and whether it takes ``*args``.

    Returns None when the signature cannot be inspected.
    """
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        return None
    positional = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    )
    params = [param for param in signature.parameters.values() if param.kind in positional]
    var_positional = any(
        param.kind is inspect.Parameter.VAR_POSITIONAL for param in signature.parameters.values()
    )
    return params, var_positional


def _declared_arity(handler: Callable[..., Any]) -> int:
    """Number of positional parameters ``handler`` declares.

    ``*args`` is not counted. Callables without an inspectable signature
    count as zero.
    """
    shape = _signature_shape(handler)
    return 0 if shape is None else len(shape[0])


def _bind_args(handler: Callable[..., Any], args: tuple[Any, ...]) -> tuple[Any, ...]:
    """Fit ``args`` to the positional parameters ``handler`` declares.

    Surplus arguments are dropped; missing required parameters get None.
    Handlers taking ``*args`` or without an inspectable signature receive
    ``args`` unchanged.
    """
    shape = _signature_shape(handler)
    if shape is None or shape[1]:
        return args
    params = shape[0]
    if len(args) >= len(params):
        return args[: len(params)]
    required = sum(1 for param in params if param.default is inspect.Parameter.empty)
    return args + (None,) * max(0, required - len(args))


def handler_kind(handler: Callable[..., Any]) -> HandlerKind:
    """Classify a host-style handler.

    An explicit tag from :func:`define_node_listener` or
    :func:`define_node_middleware` wins. Untagged handlers declaring more
    than two positional parameters are middleware, all others listeners.
    """
    kind = getattr(handler, KIND_MARKER, None)
    if isinstance(kind, HandlerKind):
        return kind
    return HandlerKind.MIDDLEWARE if _declared_arity(handler) > 2 else HandlerKind.LISTENER


# =============================================================================
# Host style -> event handler
# =============================================================================


def from_node_middleware(handler: NodeListener | NodeMiddleware | EventHandler) -> EventHandler:
    """Wrap a listener or middleware as an event handler.

    Event handlers are returned unchanged.

    Raises:
        HTTPTypeError: If ``handler`` is not callable
    """
    if is_event_handler(handler):
        return handler
    if not callable(handler):
        raise HTTPTypeError("Invalid handler. It should be a callable:", handler)

    @event_handler
    def node_middleware_handler(event: HTTPEvent) -> asyncio.Future[Any]:
        return call_node_listener(handler, event.node.req, event.node.res)

    return node_middleware_handler


def promisify_node_listener(handler: NodeListener | NodeMiddleware) -> NodePromisifiedHandler:
    """Turn a listener or middleware into ``(req, res) -> awaitable``."""

    def promisified(req: IncomingMessage, res: ServerResponse) -> asyncio.Future[Any]:
        return call_node_listener(handler, req, res)

    return promisified


# =============================================================================
# App -> host listener
# =============================================================================


def _normalize_failure(failure: Exception) -> HTTPError:
    if isinstance(failure, HTTPError):
        return create_error(failure)
    error = create_error(str(failure))
    error.cause = failure
    error.__cause__ = failure
    error.unhandled = True
    return error


async def _dispatch_error(app: App, error: HTTPError, event: HTTPEvent) -> None:
    on_error = app.options.on_error
    if on_error is not None:
        try:
            result = on_error(error, event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"on_error callback failed for {event!r}")
        return

    if error.unhandled or error.fatal:
        tag = "fatal" if error.fatal else "unhandled"
        logger.error(f"[handler_bridge] [{tag}] {error!r}", exc_info=error)
    send_error(event, error, bool(app.options.debug))
    res = event.node.res
    if not res.writable_ended:
        # send_error skips handled events; close what a layer started
        logger.warning(f"Ending partially written response after failure: {event!r}")
        res.end()


def to_node_listener(app: App) -> NodeHandle:
    """Adapt an app's root event handler into a host listener.

    The returned coroutine function never raises for handler failures:
    every failure is normalized to an :class:`HTTPError` and handed to
    ``app.options.on_error`` or, without one, logged (when unhandled or
    fatal) and sent to the client.
    """

    async def node_handle(req: IncomingMessage, res: ServerResponse) -> None:
        event = create_event(req, res)
        try:
            await app.handler(event)
        except Exception as failure:
            await _dispatch_error(app, _normalize_failure(failure), event)

    return node_handle


# =============================================================================
# Settle-once bridging primitive
# =============================================================================


def _adopt(future: asyncio.Future[Any], awaitable: Awaitable[Any]) -> None:
    """Settle ``future`` with the outcome of ``awaitable`` unless already settled."""
    task = asyncio.ensure_future(awaitable)

    def on_done(task: asyncio.Future[Any]) -> None:
        if task.cancelled():
            if not future.done():
                future.cancel()
            return
        error = task.exception()
        if future.done():
            if error is not None:
                logger.debug(f"Ignoring failure after settlement: {error!r}")
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(task.result())

    task.add_done_callback(on_done)


def call_node_listener(
    handler: NodeListener | NodeMiddleware,
    req: IncomingMessage,
    res: ServerResponse,
) -> asyncio.Future[Any]:
    """Run a host-style handler and return a future settled exactly once.

    Listeners resolve with their return value as soon as the call returns;
    a listener that ends the response later is not waited for.

    Middleware that returns ``None`` settles on whichever comes first:
    ``next()``/``next(err)``, the response's "close" or its "error". The
    first signal detaches the response subscriptions. Middleware that
    returns a value resolves with it, awaiting it first when it is
    awaitable.

    Synchronous failures and ``next(err)`` reject with ``create_error(err)``.

    Must be called from a running event loop.
    """
    is_middleware = handler_kind(handler) is HandlerKind.MIDDLEWARE
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

    def next_(error: Any = None) -> None:
        if is_middleware:
            res.off("close", next_)
            res.off("error", next_)
        if future.done():
            return
        if error:
            future.set_exception(create_error(error))
        else:
            future.set_result(None)

    args = (req, res, next_) if is_middleware else (req, res)
    try:
        returned = handler(*_bind_args(handler, args))
    except Exception as error:
        next_(error)
        return future

    if is_middleware and returned is None:
        # next() may already have run synchronously
        if not future.done():
            res.once("close", next_)
            res.once("error", next_)
    elif inspect.isawaitable(returned):
        _adopt(future, returned)
    elif not future.done():
        future.set_result(returned)

    return future

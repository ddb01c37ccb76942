"""handler-bridge: convert between (req, res[, next]) handlers and event handlers."""

from .app import App, AppOptions, create_app
from .asgi import create_asgi_app, to_asgi_app
from .emitter import EventEmitter
from .errors import HTTPError, HTTPTypeError, create_error, is_error, send_error
from .event import HTTPEvent, NodeContext, create_event, event_handler, is_event, is_event_handler
from .messages import IncomingMessage, ServerResponse
from .node import (
    HandlerKind,
    NodeListener,
    NodeMiddleware,
    NodePromisifiedHandler,
    call_node_listener,
    define_node_listener,
    define_node_middleware,
    from_node_middleware,
    handler_kind,
    promisify_node_listener,
    to_node_listener,
)

__all__ = [
    # Application
    "App",
    "AppOptions",
    "create_app",
    # Events
    "HTTPEvent",
    "NodeContext",
    "create_event",
    "event_handler",
    "is_event",
    "is_event_handler",
    # Errors
    "HTTPError",
    "HTTPTypeError",
    "create_error",
    "is_error",
    "send_error",
    # Host objects
    "EventEmitter",
    "IncomingMessage",
    "ServerResponse",
    # Bridge
    "HandlerKind",
    "NodeListener",
    "NodeMiddleware",
    "NodePromisifiedHandler",
    "call_node_listener",
    "define_node_listener",
    "define_node_middleware",
    "from_node_middleware",
    "handler_kind",
    "promisify_node_listener",
    "to_node_listener",
    # ASGI
    "create_asgi_app",
    "to_asgi_app",
]

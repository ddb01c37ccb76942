"""Minimal synchronous event emitter.

Host request/response objects expose lifecycle notifications ("finish",
"close", "error") through this emitter. The bridge only relies on
``once`` and ``off``; ``on`` and ``emit`` are used by hosts and tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

Listener = Callable[..., Any]


class _OnceWrapper:
    """Wraps a listener so it detaches itself before its first call."""

    def __init__(self, emitter: EventEmitter, name: str, listener: Listener) -> None:
        self.emitter = emitter
        self.name = name
        self.listener = listener
        self.fired = False

    def __call__(self, *args: Any) -> Any:
        if self.fired:
            return None
        self.fired = True
        self.emitter.off(self.name, self)
        return self.listener(*args)


class EventEmitter:
    """Named-event pub/sub with one-shot subscriptions.

    Usage:
        res.once("close", on_close)
        res.off("close", on_close)   # also removes the once-registration
        res.emit("close")
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, name: str, listener: Listener) -> EventEmitter:
        """Subscribe ``listener`` to every ``name`` emission."""
        self._listeners.setdefault(name, []).append(listener)
        return self

    def once(self, name: str, listener: Listener) -> EventEmitter:
        """Subscribe ``listener`` to the next ``name`` emission only."""
        return self.on(name, _OnceWrapper(self, name, listener))

    def off(self, name: str, listener: Listener) -> EventEmitter:
        """Remove the most recent registration of ``listener`` for ``name``.

        A listener registered through ``once`` can be removed by passing the
        original callable. Removing an unknown listener is a no-op.
        """
        listeners = self._listeners.get(name)
        if not listeners:
            return self

        for index in range(len(listeners) - 1, -1, -1):
            registered = listeners[index]
            if registered is listener or (
                isinstance(registered, _OnceWrapper) and registered.listener is listener
            ):
                del listeners[index]
                break

        if not listeners:
            del self._listeners[name]
        return self

    def emit(self, name: str, *args: Any) -> bool:
        """Call every listener of ``name`` synchronously.

        Returns:
            True if at least one listener was registered
        """
        # Copy so listeners may detach themselves while we iterate
        listeners = list(self._listeners.get(name, []))
        for listener in listeners:
            listener(*args)
        return bool(listeners)

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name, []))

    def remove_all_listeners(self, name: str | None = None) -> EventEmitter:
        if name is None:
            self._listeners = {}
        else:
            self._listeners.pop(name, None)
        return self

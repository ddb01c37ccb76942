"""HTTP error type, normalization and client error responses.

Every failure that crosses the bridge is normalized into an :class:`HTTPError`
so the root driver only deals with one error shape:

    status_code, status_message, data  -> client-facing fields
    cause                              -> the original failure
    unhandled                          -> failure was not an HTTPError
    fatal                              -> failure is unrecoverable
"""

from __future__ import annotations

import re
import traceback
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .event import HTTPEvent

DEFAULT_STATUS_CODE = 500

# Status messages end up in the status line; keep only tab and printable ASCII
_INVALID_STATUS_MESSAGE_CHARS = re.compile(r"[^\t\x20-\x7e]")


def sanitize_status_code(status_code: Any, default: int = DEFAULT_STATUS_CODE) -> int:
    """Coerce ``status_code`` into the 100-999 range, else ``default``."""
    try:
        code = int(status_code)
    except (TypeError, ValueError):
        return default
    if code < 100 or code > 999:
        return default
    return code


def sanitize_status_message(status_message: str | None) -> str | None:
    if status_message is None:
        return None
    return _INVALID_STATUS_MESSAGE_CHARS.sub("", status_message)


class HTTPError(Exception):
    """The normalized error shape.

    Args:
        message: Human-readable description
        status_code: HTTP status sent to the client (sanitized, default 500)
        status_message: Optional HTTP reason phrase
        data: Optional JSON-serializable payload for the client
        cause: The original failure, if this error wraps one
        fatal: Failure is unrecoverable at the process level
        unhandled: Failure did not originate as an HTTPError
    """

    def __init__(
        self,
        message: str = "",
        *,
        status_code: int = DEFAULT_STATUS_CODE,
        status_message: str | None = None,
        data: Any = None,
        cause: Any = None,
        fatal: bool = False,
        unhandled: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = sanitize_status_code(status_code)
        self.status_message = sanitize_status_message(status_message)
        self.data = data
        self.cause = cause
        self.fatal = fatal
        self.unhandled = unhandled
        if isinstance(cause, BaseException):
            self.__cause__ = cause

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""

    def to_json(self) -> dict[str, Any]:
        """Public fields of the error (no cause, no traceback)."""
        payload: dict[str, Any] = {
            "message": self.message,
            "status_code": self.status_code,
        }
        if self.status_message:
            payload["status_message"] = self.status_message
        if self.data is not None:
            payload["data"] = self.data
        return payload

    def __repr__(self) -> str:
        flags = [flag for flag in ("fatal", "unhandled") if getattr(self, flag)]
        suffix = f" [{', '.join(flags)}]" if flags else ""
        return f"HTTPError({self.status_code}, {self.message!r}){suffix}"


class HTTPTypeError(HTTPError, TypeError):
    """Raised when a value that is not a handler is used as one."""

    def __init__(self, message: str, value: Any = None) -> None:
        super().__init__(f"{message} {value!r}", status_code=DEFAULT_STATUS_CODE)
        self.value = value


def is_error(value: Any) -> bool:
    return isinstance(value, HTTPError)


def create_error(input: str | BaseException | Mapping[str, Any] | Any) -> HTTPError:
    """Normalize ``input`` into an :class:`HTTPError`.

    - ``str``: new error with that message
    - ``HTTPError``: returned unchanged, keeping status code and flags
    - other exceptions: wrapped, ``cause`` is the exception's own cause or
      the exception itself
    - mappings: fields are read from the keys ``message``, ``status_code``
      (or ``status``), ``status_message`` (or ``status_text``), ``data``,
      ``cause``, ``fatal`` and ``unhandled``
    """
    if isinstance(input, str):
        return HTTPError(input)

    if isinstance(input, HTTPError):
        return input

    if isinstance(input, BaseException):
        return HTTPError(str(input), cause=input.__cause__ or input)

    if isinstance(input, Mapping):
        status_message = input.get("status_message") or input.get("status_text")
        message = input.get("message") or status_message or ""
        return HTTPError(
            str(message),
            status_code=input.get("status_code") or input.get("status") or DEFAULT_STATUS_CODE,
            status_message=status_message,
            data=input.get("data"),
            cause=input.get("cause"),
            fatal=bool(input.get("fatal", False)),
            unhandled=bool(input.get("unhandled", False)),
        )

    return HTTPError(str(input), cause=input)


# =============================================================================
# Client error responses
# =============================================================================


class ErrorResponse(BaseModel):
    """JSON body written by :func:`send_error`."""

    status_code: int
    status_message: str | None = None
    stack: list[str] = Field(default_factory=list)
    data: Any = None


def format_stack(error: BaseException) -> list[str]:
    """Traceback of ``error`` (including its causes) as stripped lines."""
    lines: list[str] = []
    for chunk in traceback.format_exception(error):
        lines.extend(line.strip() for line in chunk.splitlines() if line.strip())
    return lines


def send_error(event: HTTPEvent, error: BaseException | str, debug: bool = False) -> None:
    """Write ``error`` to the client as a JSON response.

    Does nothing when the event was already handled. The traceback is only
    included when ``debug`` is true.
    """
    if event.handled:
        return

    http_error = create_error(error)
    body = ErrorResponse(
        status_code=http_error.status_code,
        status_message=http_error.status_message,
        stack=format_stack(http_error) if debug else [],
        data=http_error.data,
    )

    res = event.node.res
    res.status_code = http_error.status_code
    if http_error.status_message:
        res.status_message = http_error.status_message
    res.set_header("content-type", "application/json")
    res.end(body.model_dump_json(indent=2))

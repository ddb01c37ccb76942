"""Pytest configuration and shared fixtures."""

import pytest

from handler_bridge.messages import IncomingMessage, ServerResponse


@pytest.fixture
def req() -> IncomingMessage:
    """A plain GET request."""
    return IncomingMessage(method="GET", url="/hello?name=world", headers={"Accept": "*/*"})


@pytest.fixture
def res(req: IncomingMessage) -> ServerResponse:
    """A fresh response bound to ``req``."""
    return ServerResponse(req)

"""handler-bridge CLI.

Usage:
    handler-bridge serve myproject.web:app              # Serve an App on 127.0.0.1:3000
    handler-bridge serve myproject.web:create_app --port 8080 --debug
    handler-bridge layers myproject.web:app             # List the app's handler stack

TARGET is ``module:attribute`` naming an App instance or a zero-argument
factory returning one. HANDLER_BRIDGE_DEBUG=1 enables debug error bodies
unless --debug/--no-debug is given.
"""

from __future__ import annotations

import logging
import sys

import click
import uvicorn
from uvicorn.importer import ImportFromStringError, import_from_string

from .app import App
from .asgi import create_asgi_app


def load_app(target: str) -> App:
    """Import ``module:attribute`` and return the App it names."""
    try:
        obj = import_from_string(target)
    except ImportFromStringError as e:
        raise click.BadParameter(str(e), param_hint="TARGET") from e

    if not isinstance(obj, App) and callable(obj):
        obj = obj()
    if not isinstance(obj, App):
        raise click.BadParameter(
            f"{target} is not an App or an App factory", param_hint="TARGET"
        )
    return obj


@click.group()
def main() -> None:
    """handler-bridge - serve event-handler apps as ASGI applications."""


@main.command()
@click.argument("target")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=3000, help="Port to bind to")
@click.option("--debug/--no-debug", default=None, help="Include tracebacks in error responses")
@click.option(
    "--log-level",
    default="warning",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Log level for the bridge and the server",
)
def serve(target: str, host: str, port: int, debug: bool | None, log_level: str) -> None:
    """Serve TARGET over HTTP."""
    # Diagnostics go to stderr
    logging.basicConfig(
        level=log_level.upper(),
        format="%(levelname)s: %(name)s: %(message)s",
        stream=sys.stderr,
    )

    app = load_app(target)
    if debug is not None:
        app.options.debug = debug

    click.echo(f"Serving {target} on http://{host}:{port}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(create_asgi_app(app), host=host, port=port, log_level=log_level)


@main.command()
@click.argument("target")
def layers(target: str) -> None:
    """List the handler stack of TARGET."""
    app = load_app(target)
    if not app.stack:
        click.echo("No handlers registered")
        return
    for index, layer in enumerate(app.stack):
        name = getattr(layer, "__qualname__", None) or repr(layer)
        click.echo(f"{index:>3}  {name}")

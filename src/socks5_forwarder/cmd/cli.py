"""Command-line interface for the forwarder.

This module provides the main command-line interface, handling:
- Command-line and environment variable configuration
- Validation of the listen, target and proxy addresses
- Logging setup
- Server lifecycle and exit codes
- The optional live dashboard

The CLI is built using Typer. Every option can also be supplied through a
``SOCKS5_FORWARDER_*`` environment variable.

Example:
    # Run from command line:
    $ socks5-forwarder serve --target 1.1.1.1:443 --proxy 10.0.0.1:1080
    $ python -m socks5_forwarder serve -l 0.0.0.0:8443 -t example.com:443 --proxy 127.0.0.1:1080
"""

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape

from socks5_forwarder import __version__
from socks5_forwarder.core.address import parse_host_port
from socks5_forwarder.core.config import DEFAULT_CONNECT_TIMEOUT, DEFAULT_HANDSHAKE_TIMEOUT
from socks5_forwarder.core.exceptions import BindError
from socks5_forwarder.core.forwarder import ForwarderServer, ProxyConfig, TargetAddress, serve
from socks5_forwarder.core.utils.log_config import LOG_DIR, setup_logging
from socks5_forwarder.core.utils.prompt import create_forwarder_ui

console = Console()
app = typer.Typer(help="Forward incoming connections to a fixed target through a SOCKS5 proxy")

ENV_PREFIX = "SOCKS5_FORWARDER_"


def version_callback(value: bool) -> None:
    """Show version information."""
    if value:
        console.print(f"[cyan]SOCKS5 Forwarder v{__version__}[/cyan]")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """Forward incoming connections to a fixed target through a SOCKS5 proxy."""


@app.command(name="serve")
def start_forwarder(
    listen: str = typer.Option(
        "127.0.0.1:8000",
        "--listen",
        "-l",
        envvar=f"{ENV_PREFIX}LISTEN",
        help="Listen address, like 127.0.0.1:8000",
    ),
    target: str = typer.Option(
        ...,
        "--target",
        "-t",
        envvar=f"{ENV_PREFIX}TARGET",
        help="Target address, like 1.1.1.1:443",
    ),
    proxy: str = typer.Option(
        ...,
        "--proxy",
        envvar=f"{ENV_PREFIX}PROXY",
        help="SOCKS5 proxy address, like 10.0.0.1:1080",
    ),
    username: str | None = typer.Option(
        None,
        "--user",
        envvar=f"{ENV_PREFIX}USER",
        help="SOCKS5 proxy username, can be left blank",
    ),
    password: str | None = typer.Option(
        None,
        "--pass",
        envvar=f"{ENV_PREFIX}PASS",
        help="SOCKS5 proxy password, can be left blank",
    ),
    connect_timeout: float = typer.Option(
        DEFAULT_CONNECT_TIMEOUT,
        "--connect-timeout",
        envvar=f"{ENV_PREFIX}CONNECT_TIMEOUT",
        help="Seconds to wait for the proxy TCP connect, 0 to wait forever",
    ),
    handshake_timeout: float = typer.Option(
        DEFAULT_HANDSHAKE_TIMEOUT,
        "--handshake-timeout",
        envvar=f"{ENV_PREFIX}HANDSHAKE_TIMEOUT",
        help="Seconds to wait for each SOCKS5 handshake step, 0 to wait forever",
    ),
    debug: bool = typer.Option(
        default=False,
        help="Enable debug logging",
    ),
    log_file: bool = typer.Option(
        default=True,
        help=f"Also log to {LOG_DIR / 'forwarder.log'}",
    ),
    dashboard: bool = typer.Option(
        default=False,
        help="Show a live statistics panel",
    ),
):
    """Start the forwarder."""
    setup_logging(debug=debug, log_dir=LOG_DIR if log_file else None)

    try:
        parse_host_port(listen)
        target_addr = TargetAddress.parse(target)
        proxy_config = ProxyConfig.from_options(
            proxy,
            username,
            password,
            connect_timeout=connect_timeout,
            handshake_timeout=handshake_timeout,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        console.print(f"[red]Invalid configuration: {escape(str(e))}")
        raise typer.Exit(2) from e

    if bool(username) != bool(password):
        logger.warning("Only one of --user/--pass given, connecting without authentication")

    dashboards = []

    def on_ready(server: ForwarderServer) -> None:
        if dashboard:
            host, port = server.server_address[:2]
            ui = create_forwarder_ui(f"{host}:{port}", str(target_addr), proxy_config.address)
            dashboards.append(ui)
            ui.start()

    try:
        serve(listen, target_addr, proxy_config, ready=on_ready)
    except BindError as e:
        logger.error(str(e))
        console.print(f"[red]Error: {escape(str(e))}")
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        logger.info("Shutting down forwarder")
    finally:
        for ui in dashboards:
            ui.stop()


if __name__ == "__main__":
    app()

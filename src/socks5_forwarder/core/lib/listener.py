"""Listening server that fans every connection out to its own relay thread.

This module implements the accept loop of the forwarder with the following
features:
- Thread per connection, so a slow or stalled relay never blocks accepting
- Accept errors are logged and the loop keeps running
- Per-connection failures are contained in their handler thread
- Structured log context (connection id and peer) for every relay

Example:
    # Forward 127.0.0.1:8000 to 1.1.1.1:443 through a local SOCKS5 proxy
    serve("127.0.0.1:8000", TargetAddress.parse("1.1.1.1:443"), ProxyConfig("127.0.0.1:1080"))
"""

import itertools
import socket
import socketserver
from collections.abc import Callable

from loguru import logger

from socks5_forwarder.core.address import TargetAddress, parse_host_port
from socks5_forwarder.core.config import ProxyConfig
from socks5_forwarder.core.exceptions import BindError, RelayError
from socks5_forwarder.core.utils.utils import format_bytes

from .relay import relay
from .relay_stats import RelayStats, relay_stats

_connection_ids = itertools.count(1)


class RelayHandler(socketserver.BaseRequestHandler):
    """Relay one accepted connection through the proxy."""

    server: "ForwarderServer"

    def handle(self) -> None:
        """Run the relay, logging instead of raising on failure."""
        peer = f"{self.client_address[0]}:{self.client_address[1]}"
        stats = self.server.stats
        failed = True
        with logger.contextualize(conn=next(_connection_ids), peer=peer):
            logger.info(f"Receive new incoming connection from {peer}")
            stats.connection_started()
            try:
                summary = relay(self.request, self.server.target, self.server.proxy_config, stats)
                failed = False
                logger.info(
                    f"Relay finished: {format_bytes(summary.bytes_sent)} sent, "
                    f"{format_bytes(summary.bytes_received)} received"
                )
            except RelayError as e:
                logger.error(f"Relay for {peer} failed: {e}")
            finally:
                stats.connection_ended(failed=failed)


class ForwarderServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """Forwarding server implementation."""

    allow_reuse_address = True
    daemon_threads = True
    request_queue_size = 128

    def __init__(
        self,
        server_address: tuple[str, int],
        target: TargetAddress,
        proxy_config: ProxyConfig,
        stats: RelayStats | None = None,
    ) -> None:
        self.target = target
        self.proxy_config = proxy_config
        self.stats = stats or relay_stats
        if ":" in server_address[0]:
            self.address_family = socket.AF_INET6
        super().__init__(server_address, RelayHandler)

    def get_request(self) -> tuple[socket.socket, tuple]:
        """Accept a connection, logging accept errors before the loop skips them."""
        try:
            return super().get_request()
        except OSError as e:
            logger.error(f"Receiving incoming connection in failure: {e}")
            raise

    def handle_error(self, request, client_address) -> None:
        """Log errors that escaped a handler or prevented spawning one."""
        logger.exception(f"Unhandled error for connection from {client_address}")


def create_server(
    listen_addr: str,
    target: TargetAddress,
    proxy_config: ProxyConfig,
    stats: RelayStats | None = None,
) -> ForwarderServer:
    """Bind the listening socket.

    Args:
        listen_addr: Address to listen on, as ``host:port``
        target: Fixed destination for every connection
        proxy_config: Shared proxy configuration
        stats: Statistics tracker, defaults to the global one

    Returns:
        ForwarderServer: Bound server, ready for ``serve_forever()``

    Raises:
        InvalidAddressError: If ``listen_addr`` is malformed
        BindError: If the address cannot be bound
    """
    address = parse_host_port(listen_addr)
    try:
        server = ForwarderServer(address, target, proxy_config, stats)
    except OSError as e:
        raise BindError(f"cannot listen on {listen_addr}: {e}") from e

    host, port = server.server_address[:2]
    logger.info(f"Listening at {host}:{port}, forwarding to {target} via {proxy_config.address}")
    return server


def serve(
    listen_addr: str,
    target: TargetAddress,
    proxy_config: ProxyConfig,
    stats: RelayStats | None = None,
    ready: Callable[[ForwarderServer], None] | None = None,
) -> None:
    """Accept and relay connections until the server is shut down.

    Returns normally once ``shutdown()`` is called on the server from
    another thread. Only startup errors are raised to the caller.

    Args:
        listen_addr: Address to listen on, as ``host:port``
        target: Fixed destination for every connection
        proxy_config: Shared proxy configuration
        stats: Statistics tracker, defaults to the global one
        ready: Called with the bound server before the accept loop starts
    """
    server = create_server(listen_addr, target, proxy_config, stats)
    try:
        if ready:
            ready(server)
        server.serve_forever()
    finally:
        server.server_close()
        logger.info("Listener closed")

"""Bi-directional relay between an inbound client and the SOCKS5 proxy.

For every accepted connection this module:
- Opens a TCP connection to the configured proxy
- Runs the SOCKS5 handshake for the fixed target
- Copies bytes in both directions until each source reaches end-of-stream
- Half-closes each destination once its source is exhausted

The two directions run concurrently and are joined, not raced: one side
finishing never cuts the other short, so a client that half-closes after
sending its request still receives the full response.

Example:
    summary = relay(inbound_sock, TargetAddress.parse("1.1.1.1:443"), proxy_config)
    logger.info(f"{summary.bytes_sent} bytes up, {summary.bytes_received} bytes down")
"""

import socket
import threading
from dataclasses import dataclass
from typing import Final

from loguru import logger

from socks5_forwarder.core.address import TargetAddress
from socks5_forwarder.core.config import ProxyConfig
from socks5_forwarder.core.exceptions import (
    HandshakeFailedError,
    ProxyUnreachableError,
    RelayIOError,
    SocksError,
)
from socks5_forwarder.core.lib import socks_client
from socks5_forwarder.core.lib.relay_stats import RelayStats

BUFFER_SIZE: Final = 64 * 1024

CLIENT_TO_SERVER: Final = "client to server"
SERVER_TO_CLIENT: Final = "server to client"


@dataclass
class PipeResult:
    """Outcome of one relay direction."""

    direction: str
    bytes_copied: int = 0
    error: OSError | None = None


@dataclass(frozen=True)
class RelaySummary:
    """Byte counts of a relay that finished cleanly."""

    bytes_sent: int
    bytes_received: int


def _pipe(
    src: socket.socket,
    dst: socket.socket,
    result: PipeResult,
    stats: RelayStats | None = None,
) -> None:
    """Copy ``src`` to ``dst`` until end-of-stream, then half-close ``dst``."""
    upstream = result.direction == CLIENT_TO_SERVER
    try:
        while data := src.recv(BUFFER_SIZE):
            dst.sendall(data)
            result.bytes_copied += len(data)
            if stats:
                stats.update_bytes(len(data) if upstream else 0, 0 if upstream else len(data))
    except OSError as e:
        result.error = e

    try:
        dst.shutdown(socket.SHUT_WR)
    except OSError as e:
        if result.error is None:
            result.error = e


def open_proxy_connection(proxy_config: ProxyConfig) -> socket.socket:
    """Connect to the SOCKS5 proxy.

    Raises:
        ProxyUnreachableError: If the proxy cannot be resolved or connected to
    """
    try:
        return socket.create_connection(proxy_config.endpoint, timeout=proxy_config.connect_timeout)
    except OSError as e:
        raise ProxyUnreachableError(f"cannot reach proxy {proxy_config.address}: {e}") from e


def relay(
    inbound: socket.socket,
    target: TargetAddress,
    proxy_config: ProxyConfig,
    stats: RelayStats | None = None,
) -> RelaySummary:
    """Relay one inbound connection to ``target`` through the proxy.

    Args:
        inbound: Accepted client socket, owned by the caller
        target: Destination sent in the CONNECT request
        proxy_config: Shared proxy configuration
        stats: Optional statistics tracker updated with relayed bytes

    Returns:
        RelaySummary: Bytes copied in each direction

    Raises:
        ProxyUnreachableError: If the proxy cannot be reached
        HandshakeFailedError: If the SOCKS5 handshake fails; no byte is relayed
        RelayIOError: If either direction hit a socket error, raised after both ended
    """
    with open_proxy_connection(proxy_config) as outbound:
        try:
            outbound.settimeout(proxy_config.handshake_timeout)
            socks_client.connect(outbound, target, proxy_config.credential)
        except (SocksError, OSError) as e:
            raise HandshakeFailedError(e) from e
        outbound.settimeout(None)

        logger.info(f"Start relay to {target}")
        upstream = PipeResult(CLIENT_TO_SERVER)
        downstream = PipeResult(SERVER_TO_CLIENT)
        pump = threading.Thread(
            target=_pipe,
            args=(inbound, outbound, upstream, stats),
            name=f"{threading.current_thread().name}-up",
            daemon=True,
        )
        pump.start()
        _pipe(outbound, inbound, downstream, stats)
        pump.join()

    errors = {result.direction: result.error for result in (upstream, downstream) if result.error}
    if errors:
        raise RelayIOError(errors)
    return RelaySummary(upstream.bytes_copied, downstream.bytes_copied)

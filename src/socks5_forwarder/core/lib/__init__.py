"""Core forwarder library components."""

from .listener import ForwarderServer, RelayHandler, create_server, serve
from .relay import RelaySummary, relay
from .relay_stats import RelayStats
from .socks_client import BoundAddress, connect

__all__ = [
    "BoundAddress",
    "connect",
    "create_server",
    "ForwarderServer",
    "relay",
    "RelayHandler",
    "RelayStats",
    "RelaySummary",
    "serve",
]

"""Main entry point of the forwarder core.

This module exposes the pieces the command line needs to start a
forwarder, keeping the library layout an implementation detail.

Example:
    from socks5_forwarder.core.forwarder import ProxyConfig, TargetAddress, serve

    serve("127.0.0.1:8000", TargetAddress.parse("1.1.1.1:443"), ProxyConfig("127.0.0.1:1080"))
"""

from .address import TargetAddress
from .config import ProxyConfig
from .lib import ForwarderServer, serve

__all__ = ["ForwarderServer", "ProxyConfig", "serve", "TargetAddress"]

"""Core forwarder implementation.

This package contains the core components of the forwarder:
- Address parsing and the fixed target
- Proxy configuration
- The SOCKS5 client handshake
- The bi-directional relay and the threaded listener
- Statistics, logging and the live dashboard
- Exception handling

The command-line interface lives in ``socks5_forwarder.cmd`` and only
wires these pieces together.
"""

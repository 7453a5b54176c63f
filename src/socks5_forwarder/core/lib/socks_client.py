"""SOCKS5 client handshake for outbound connections.

This module implements the client side of SOCKS5 according to RFC 1928 and
the username/password sub-negotiation of RFC 1929, providing:
- Method negotiation (no-auth, and username/password when configured)
- Username/password authentication
- The CONNECT request for IPv4, IPv6 and domain name targets
- Parsing of the server reply, including the bound address

The handshake runs on a socket that is already connected to the proxy.
Once it returns, the same socket carries the relayed application bytes.

Example:
    sock = socket.create_connection(("127.0.0.1", 1080))
    bound = connect(sock, TargetAddress.parse("example.com:443"))
"""

import socket
import struct
from dataclasses import dataclass
from typing import Final

from loguru import logger

from socks5_forwarder.core.address import AddressType, TargetAddress
from socks5_forwarder.core.config import Credential
from socks5_forwarder.core.exceptions import (
    AuthenticationFailedError,
    NoAcceptableAuthMethodError,
    ProtocolViolationError,
    ReplyCode,
    ServerReplyError,
)

# SOCKS protocol constants
SOCKS_VERSION: Final = 5
CONNECT_CMD: Final = 1
RESERVED: Final = 0

# Authentication methods
METHOD_NO_AUTH: Final = 0x00
METHOD_USERNAME_PASSWORD: Final = 0x02
METHOD_NO_ACCEPTABLE: Final = 0xFF

# RFC 1929 sub-negotiation
AUTH_VERSION: Final = 1
AUTH_SUCCESS: Final = 0


@dataclass(frozen=True)
class BoundAddress:
    """Address the proxy bound for the outbound connection."""

    host: str
    port: int


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    """Read exactly ``size`` bytes or fail on a truncated frame."""
    buf = bytearray()
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            raise ProtocolViolationError(
                f"proxy closed the connection after {len(buf)} of {size} bytes"
            )
        buf.extend(chunk)
    return bytes(buf)


def offered_methods(credential: Credential | None) -> list[int]:
    """Return the authentication methods to offer, in preference order."""
    if credential is None:
        return [METHOD_NO_AUTH]
    return [METHOD_NO_AUTH, METHOD_USERNAME_PASSWORD]


def _negotiate(sock: socket.socket, credential: Credential | None) -> int:
    """Send the method selection message and return the chosen method."""
    methods = offered_methods(credential)
    sock.sendall(struct.pack(f"!BB{len(methods)}B", SOCKS_VERSION, len(methods), *methods))

    version, method = struct.unpack("!BB", _recv_exact(sock, 2))
    if version != SOCKS_VERSION:
        raise ProtocolViolationError(f"unexpected SOCKS version {version} in method reply")
    if method == METHOD_NO_ACCEPTABLE:
        raise NoAcceptableAuthMethodError("proxy accepted none of the offered methods")
    if method not in methods:
        raise ProtocolViolationError(f"proxy selected method 0x{method:02x} which was not offered")
    return method


def _authenticate(sock: socket.socket, credential: Credential) -> None:
    """Run the RFC 1929 username/password sub-negotiation."""
    username = credential.username.encode()
    password = credential.password.encode()
    request = (
        struct.pack("!BB", AUTH_VERSION, len(username))
        + username
        + struct.pack("!B", len(password))
        + password
    )
    sock.sendall(request)

    version, status = struct.unpack("!BB", _recv_exact(sock, 2))
    if version != AUTH_VERSION:
        raise ProtocolViolationError(f"unexpected auth version {version}")
    if status != AUTH_SUCCESS:
        raise AuthenticationFailedError(f"proxy rejected credentials for {credential.username!r}")


def _read_bound_address(sock: socket.socket, addr_type: int) -> BoundAddress:
    if addr_type == AddressType.IPV4:
        host = socket.inet_ntop(socket.AF_INET, _recv_exact(sock, 4))
    elif addr_type == AddressType.IPV6:
        host = socket.inet_ntop(socket.AF_INET6, _recv_exact(sock, 16))
    elif addr_type == AddressType.DOMAIN:
        (length,) = struct.unpack("!B", _recv_exact(sock, 1))
        host = _recv_exact(sock, length).decode(errors="replace")
    else:
        raise ProtocolViolationError(f"unknown address type 0x{addr_type:02x} in reply")
    (port,) = struct.unpack("!H", _recv_exact(sock, 2))
    return BoundAddress(host, port)


def _request_connect(sock: socket.socket, target: TargetAddress) -> BoundAddress:
    """Send the CONNECT request and parse the reply."""
    sock.sendall(struct.pack("!BBB", SOCKS_VERSION, CONNECT_CMD, RESERVED) + target.encode())

    version, reply, reserved, addr_type = struct.unpack("!BBBB", _recv_exact(sock, 4))
    if version != SOCKS_VERSION:
        raise ProtocolViolationError(f"unexpected SOCKS version {version} in CONNECT reply")
    if reserved != RESERVED:
        raise ProtocolViolationError(f"non-zero reserved byte 0x{reserved:02x} in CONNECT reply")
    if reply != ReplyCode.SUCCEEDED:
        try:
            code = ReplyCode(reply)
        except ValueError:
            raise ProtocolViolationError(f"unknown reply code 0x{reply:02x}") from None
        raise ServerReplyError(code)
    return _read_bound_address(sock, addr_type)


def connect(
    sock: socket.socket, target: TargetAddress, credential: Credential | None = None
) -> BoundAddress:
    """Perform the SOCKS5 handshake on a socket connected to the proxy.

    Args:
        sock: Socket already connected to the SOCKS5 proxy
        target: Destination for the CONNECT request
        credential: Optional username/password; enables method 0x02

    Returns:
        BoundAddress: Address the proxy reports for the outbound connection

    Raises:
        NoAcceptableAuthMethodError: If the proxy rejects all offered methods
        AuthenticationFailedError: If the proxy rejects the credentials
        ServerReplyError: If the proxy answers CONNECT with an error code
        ProtocolViolationError: If a reply is malformed or truncated
        OSError: On socket errors and timeouts
    """
    method = _negotiate(sock, credential)
    logger.debug(f"Proxy selected auth method 0x{method:02x}")

    if method == METHOD_USERNAME_PASSWORD:
        # Only offered when a credential is configured
        _authenticate(sock, credential)

    bound = _request_connect(sock, target)
    logger.debug(f"Proxy connected to {target}, bound at {bound.host}:{bound.port}")
    return bound

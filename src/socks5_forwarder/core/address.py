"""Address parsing and the fixed relay target.

This module provides:
- Parsing of ``host:port`` strings (including bracketed IPv6 literals)
- The ``TargetAddress`` variant used in SOCKS5 CONNECT requests
- Wire encoding of a target as ATYP + address + port

A target is validated when it is built, so a target that cannot be
expressed in a SOCKS5 request (for example a domain name longer than the
single-byte length field allows) is rejected at startup rather than on the
first connection.

Example:
    target = TargetAddress.parse("example.com:443")
    assert target.kind is AddressType.DOMAIN
    payload = target.encode()
"""

import ipaddress
import socket
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Final

from socks5_forwarder.core.exceptions import InvalidAddressError, InvalidTargetError

MAX_PORT: Final = 0xFFFF
MAX_DOMAIN_LENGTH: Final = 0xFF


class AddressType(IntEnum):
    """SOCKS5 address types (ATYP)."""

    IPV4 = 0x01
    DOMAIN = 0x03
    IPV6 = 0x04


def parse_host_port(value: str) -> tuple[str, int]:
    """Split a ``host:port`` string.

    Args:
        value: Address such as ``127.0.0.1:8000``, ``example.com:443`` or ``[::1]:443``

    Returns:
        tuple[str, int]: Host (brackets stripped) and port

    Raises:
        InvalidAddressError: If the string is not a valid host:port pair
    """
    value = value.strip()
    if value.startswith("["):
        host, sep, rest = value[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise InvalidAddressError(f"invalid address {value!r}, expected [host]:port")
        port_text = rest[1:]
    else:
        host, sep, port_text = value.rpartition(":")
        if not sep:
            raise InvalidAddressError(f"invalid address {value!r}, expected host:port")
        if ":" in host:
            raise InvalidAddressError(f"invalid address {value!r}, IPv6 hosts must be bracketed")

    if not host:
        raise InvalidAddressError(f"invalid address {value!r}, missing host")
    if not port_text.isdigit() or int(port_text) > MAX_PORT:
        raise InvalidAddressError(f"invalid port in {value!r}")
    return host, int(port_text)


def _encode_domain(host: str) -> bytes:
    if host.isascii():
        return host.encode("ascii")
    try:
        return host.encode("idna")
    except UnicodeError as e:
        raise InvalidTargetError(f"domain name {host!r} cannot be IDNA encoded: {e}") from e


@dataclass(frozen=True)
class TargetAddress:
    """Destination passed to every SOCKS5 CONNECT request.

    Attributes:
        host: IP literal or domain name
        port: TCP port
        kind: Address family, decides the ATYP byte of the request
    """

    host: str
    port: int
    kind: AddressType

    def __post_init__(self) -> None:
        if not 0 <= self.port <= MAX_PORT:
            raise InvalidTargetError(f"port {self.port} out of range")
        if self.kind is AddressType.DOMAIN:
            if not self.host:
                raise InvalidTargetError("empty domain name")
            length = len(_encode_domain(self.host))
            if length > MAX_DOMAIN_LENGTH:
                raise InvalidTargetError(
                    f"domain name is {length} bytes, SOCKS5 allows at most {MAX_DOMAIN_LENGTH}"
                )
        else:
            expected = 4 if self.kind is AddressType.IPV4 else 6
            try:
                ip = ipaddress.ip_address(self.host)
            except ValueError as e:
                raise InvalidTargetError(str(e)) from e
            if ip.version != expected:
                raise InvalidTargetError(f"{self.host} is not an IPv{expected} address")
            # A SOCKS5 request carries 16 raw bytes, there is no room for a zone
            if getattr(ip, "scope_id", None):
                raise InvalidTargetError(f"{self.host} has a scope id, which SOCKS5 cannot carry")

    @classmethod
    def from_host_port(cls, host: str, port: int) -> "TargetAddress":
        """Build a target, classifying ``host`` as IPv4, IPv6 or domain name."""
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            return cls(host, port, AddressType.DOMAIN)
        kind = AddressType.IPV4 if ip.version == 4 else AddressType.IPV6
        return cls(str(ip), port, kind)

    @classmethod
    def parse(cls, value: str) -> "TargetAddress":
        """Build a target from a ``host:port`` string."""
        host, port = parse_host_port(value)
        return cls.from_host_port(host, port)

    def encode(self) -> bytes:
        """Encode as the DST.ADDR/DST.PORT part of a SOCKS5 request."""
        if self.kind is AddressType.IPV4:
            addr = socket.inet_pton(socket.AF_INET, self.host)
        elif self.kind is AddressType.IPV6:
            addr = socket.inet_pton(socket.AF_INET6, self.host)
        else:
            domain = _encode_domain(self.host)
            addr = struct.pack("!B", len(domain)) + domain
        return struct.pack("!B", self.kind) + addr + struct.pack("!H", self.port)

    def __str__(self) -> str:
        if self.kind is AddressType.IPV6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

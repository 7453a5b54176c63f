"""Custom exceptions for the forwarder.

This module defines the error taxonomy used throughout the forwarder:
- Startup errors (binding the listen address, invalid addresses)
- SOCKS5 handshake errors, including the closed table of server reply codes
- Per-connection relay errors

Only startup errors are meant to reach the process boundary. Everything
raised while serving a single connection is caught and logged by the
listener, so one failing connection never affects another.

Example:
    try:
        relay(inbound, target, proxy_config)
    except HandshakeFailedError as e:
        if isinstance(e.cause, ServerReplyError):
            logger.warning(f"Proxy refused CONNECT: {e.cause.reply.name}")
"""

from enum import IntEnum


class ReplyCode(IntEnum):
    """SOCKS5 CONNECT reply codes (RFC 1928, section 6)."""

    SUCCEEDED = 0x00
    GENERAL_FAILURE = 0x01
    CONNECTION_NOT_ALLOWED = 0x02
    NETWORK_UNREACHABLE = 0x03
    HOST_UNREACHABLE = 0x04
    CONNECTION_REFUSED = 0x05
    TTL_EXPIRED = 0x06
    COMMAND_NOT_SUPPORTED = 0x07
    ADDRESS_TYPE_NOT_SUPPORTED = 0x08

    @property
    def description(self) -> str:
        return self.name.replace("_", " ").lower()


class ForwarderError(Exception):
    """Base exception for forwarder errors."""


class BindError(ForwarderError):
    """Raised when the listen address cannot be bound."""


class InvalidAddressError(ForwarderError, ValueError):
    """Raised when a host:port string cannot be parsed."""


class SocksError(ForwarderError):
    """Base exception for SOCKS5 handshake failures."""


class NoAcceptableAuthMethodError(SocksError):
    """Raised when the proxy accepts none of the offered methods."""


class AuthenticationFailedError(SocksError):
    """Raised when the proxy rejects the username/password."""


class ProtocolViolationError(SocksError):
    """Raised on a malformed or truncated reply from the proxy."""


class ServerReplyError(SocksError):
    """Raised when the proxy answers CONNECT with a non-zero reply code."""

    def __init__(self, reply: ReplyCode) -> None:
        super().__init__(f"proxy replied {reply.description} (0x{reply.value:02x})")
        self.reply = reply


class InvalidTargetError(SocksError, ValueError):
    """Raised when a target address cannot be encoded in a SOCKS5 request."""


class InvalidCredentialError(SocksError, ValueError):
    """Raised when a username or password cannot be encoded for RFC 1929."""


class RelayError(ForwarderError):
    """Base exception for per-connection relay failures."""


class ProxyUnreachableError(RelayError):
    """Raised when the TCP connection to the proxy cannot be opened."""


class HandshakeFailedError(RelayError):
    """Raised when the SOCKS5 handshake fails.

    Attributes:
        cause: The underlying ``SocksError`` or socket ``OSError``
    """

    def __init__(self, cause: SocksError | OSError) -> None:
        super().__init__(f"SOCKS5 handshake failed: {cause}")
        self.cause = cause


class RelayIOError(RelayError):
    """Raised after both relay directions finished and at least one failed.

    Attributes:
        errors: Mapping of direction name to the ``OSError`` it hit
    """

    def __init__(self, errors: dict[str, OSError]) -> None:
        details = ", ".join(f"{direction}: {error}" for direction, error in errors.items())
        super().__init__(f"relay I/O error ({details})")
        self.errors = errors

"""Proxy configuration shared by every connection.

The configuration is built once at startup and handed to every connection
thread. All classes here are frozen dataclasses, so they can be shared
between threads without locking.
"""

from dataclasses import dataclass, field
from typing import Final

from socks5_forwarder.core.address import parse_host_port
from socks5_forwarder.core.exceptions import InvalidCredentialError

# Timeout defaults in seconds; None disables a timeout
DEFAULT_CONNECT_TIMEOUT: Final = 10.0
DEFAULT_HANDSHAKE_TIMEOUT: Final = 10.0

MAX_CREDENTIAL_LENGTH: Final = 0xFF


def _positive_or_none(value: float | None) -> float | None:
    return value if value and value > 0 else None


@dataclass(frozen=True)
class Credential:
    """Username/password pair for RFC 1929 authentication."""

    username: str
    password: str = field(repr=False)

    def __post_init__(self) -> None:
        for name, value in (("username", self.username), ("password", self.password)):
            length = len(value.encode())
            if not 1 <= length <= MAX_CREDENTIAL_LENGTH:
                raise InvalidCredentialError(
                    f"{name} must be 1-{MAX_CREDENTIAL_LENGTH} bytes, got {length}"
                )


@dataclass(frozen=True)
class ProxyConfig:
    """SOCKS5 proxy the forwarder dials for every connection.

    Attributes:
        address: Proxy address as ``host:port``
        credential: Optional username/password, offered as method 0x02
        connect_timeout: Seconds allowed for the TCP connect to the proxy
        handshake_timeout: Seconds allowed for each handshake read or write
    """

    address: str
    credential: Credential | None = None
    connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT
    handshake_timeout: float | None = DEFAULT_HANDSHAKE_TIMEOUT

    def __post_init__(self) -> None:
        # Malformed addresses are rejected at construction
        parse_host_port(self.address)

    @property
    def endpoint(self) -> tuple[str, int]:
        return parse_host_port(self.address)

    @classmethod
    def from_options(
        cls,
        address: str,
        username: str | None = None,
        password: str | None = None,
        connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT,
        handshake_timeout: float | None = DEFAULT_HANDSHAKE_TIMEOUT,
    ) -> "ProxyConfig":
        """Build a config from raw option values.

        A credential is only configured when both username and password are
        given; a zero or negative timeout means no timeout.
        """
        credential = Credential(username, password) if username and password else None
        return cls(
            address=address,
            credential=credential,
            connect_timeout=_positive_or_none(connect_timeout),
            handshake_timeout=_positive_or_none(handshake_timeout),
        )

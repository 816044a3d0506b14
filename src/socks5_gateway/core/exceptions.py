"""Custom exceptions for the SOCKS5 gateway.

Every stage of a connection reports failure by raising one of these. They are
all terminal for the connection that raised them and never for the server:
the request handler catches ``ProxyError`` and logs it.

Request-stage errors carry the reply status that should be sent back to the
client before the connection is closed, when the protocol defines one.

Example:
    try:
        request = read_request(stream)
    except RequestError as e:
        if e.reply is not None:
            write_failure(stream, e.reply)
        raise
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from socks5_gateway.core.lib.protocol import ReplyStatus


class ProxyError(Exception):
    """Base exception for proxy errors."""


class ConfigError(ProxyError):
    """Raised when the server configuration is inconsistent."""


class ProtocolError(ProxyError):
    """Raised when the client violates the handshake protocol."""


class ProtocolVersionError(ProtocolError):
    """Raised when a frame carries a version byte other than 5."""

    def __init__(self, version: int) -> None:
        super().__init__(f"protocol version not supported: {version:#04x}")
        self.version = version


class NoAcceptableMethodError(ProtocolError):
    """Raised when none of the offered methods is the configured one."""

    def __init__(self, offered: tuple[int, ...]) -> None:
        super().__init__(f"no acceptable authentication method in {list(offered)}")
        self.offered = offered


UnsupportedMethodError = NoAcceptableMethodError


class AuthVersionError(ProtocolError):
    """Raised when the password sub-negotiation version is not 1."""

    def __init__(self, version: int) -> None:
        super().__init__(f"sub-negotiation version not supported: {version:#04x}")
        self.version = version


class AuthFailureError(ProtocolError):
    """Raised when the credential check rejects the client."""


class RequestError(ProxyError):
    """Base for errors in the request stage.

    Attributes:
        reply: Status for the failure reply, or None when no reply is sent
    """

    def __init__(self, message: str, reply: ReplyStatus | None = None) -> None:
        super().__init__(message)
        self.reply = reply


class UnsupportedCommandError(RequestError):
    """Raised for unknown command bytes and for commands that are not relayed."""


class InvalidReservedFieldError(RequestError):
    """Raised when the reserved request byte is not zero."""


class UnsupportedAddressTypeError(RequestError):
    """Raised for address type bytes other than IPv4, domain and IPv6."""


class DialError(RequestError):
    """Raised when the outbound connection to the target fails."""


class ProxyIOError(ProxyError):
    """Raised when reading from or writing to a stream fails."""


class StreamClosedError(ProxyIOError):
    """Raised when the peer closes the stream in the middle of a frame."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(f"stream closed after {received} of {expected} bytes")
        self.expected = expected
        self.received = received


class DNSResolutionError(ProxyError):
    """Raised when DNS resolution fails."""


class DNSTimeoutError(DNSResolutionError):
    """Raised when resolution does not finish within the dial budget."""

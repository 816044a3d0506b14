"""Greeting and authentication method negotiation.

The client opens with::

    +----+----------+----------+
    |VER | NMETHODS | METHODS  |
    +----+----------+----------+
    | 1  |    1     | 1 to 255 |
    +----+----------+----------+

and the server answers with ``VER METHOD``. The server accepts exactly one
configured method; when the client does not offer it the answer is ``0xFF``
and the client is expected to close the connection.
"""

from __future__ import annotations

from dataclasses import dataclass

from socks5_gateway.core.exceptions import NoAcceptableMethodError, ProtocolVersionError
from socks5_gateway.core.lib.protocol import (
    SOCKS_VERSION,
    AuthMethod,
    ByteStream,
    read_byte,
    read_exact,
    write_all,
)


@dataclass(frozen=True)
class GreetingMessage:
    """Methods offered by the client, in wire order."""

    version: int
    methods: tuple[int, ...]


@dataclass(frozen=True)
class MethodSelection:
    method: AuthMethod

    @property
    def acceptable(self) -> bool:
        return self.method is not AuthMethod.NO_ACCEPTABLE

    def encode(self) -> bytes:
        return bytes((SOCKS_VERSION, self.method))


def read_greeting(stream: ByteStream) -> GreetingMessage:
    """Read the client greeting.

    Raises:
        ProtocolVersionError: If the version byte is not 5; the method count
            and methods are left unread
    """
    version = read_byte(stream)
    if version != SOCKS_VERSION:
        raise ProtocolVersionError(version)
    count = read_byte(stream)
    methods = read_exact(stream, count)
    return GreetingMessage(version=version, methods=tuple(methods))


def select_method(greeting: GreetingMessage, accepted: AuthMethod) -> MethodSelection:
    """Pick the configured method if the client offers it."""
    if accepted in greeting.methods:
        return MethodSelection(accepted)
    return MethodSelection(AuthMethod.NO_ACCEPTABLE)


def negotiate(stream: ByteStream, accepted: AuthMethod) -> MethodSelection:
    """Run the greeting exchange and write the selection.

    Args:
        stream: Client stream positioned at the start of the connection
        accepted: The single method this server accepts

    Returns:
        MethodSelection: The selection written back to the client

    Raises:
        ProtocolVersionError: If the greeting version is wrong (nothing written)
        NoAcceptableMethodError: After writing ``05 FF``
    """
    greeting = read_greeting(stream)
    selection = select_method(greeting, accepted)
    write_all(stream, selection.encode())
    if not selection.acceptable:
        raise NoAcceptableMethodError(greeting.methods)
    return selection

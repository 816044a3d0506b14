"""SOCKS5 framing primitives shared by every handshake stage.

This module holds the protocol constants of RFC 1928 and RFC 1929 as closed
enumerations, plus the exact-length readers and writers the higher stages are
built from. Each read allocates a buffer sized to the field being consumed;
a short read is an error, never a partial value.

Example:
    version = read_byte(stream)
    methods = read_exact(stream, read_byte(stream))
"""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import Final, Protocol

from socks5_gateway.core.exceptions import ProxyIOError, StreamClosedError

SOCKS_VERSION: Final = 5
RESERVED: Final = 0
PASSWORD_AUTH_VERSION: Final = 1

IPV4_LENGTH: Final = 4
IPV6_LENGTH: Final = 16
PORT_LENGTH: Final = 2

_PORT = struct.Struct("!H")


class AuthMethod(IntEnum):
    NO_AUTH = 0x00
    GSSAPI = 0x01
    PASSWORD = 0x02
    NO_ACCEPTABLE = 0xFF


class Command(IntEnum):
    CONNECT = 0x01
    BIND = 0x02
    UDP_ASSOCIATE = 0x03


class AddressType(IntEnum):
    IPV4 = 0x01
    DOMAIN = 0x03
    IPV6 = 0x04


class ReplyStatus(IntEnum):
    SUCCESS = 0x00
    SERVER_FAILURE = 0x01
    CONNECTION_NOT_ALLOWED = 0x02
    NETWORK_UNREACHABLE = 0x03
    HOST_UNREACHABLE = 0x04
    CONNECTION_REFUSED = 0x05
    TTL_EXPIRED = 0x06
    COMMAND_NOT_SUPPORTED = 0x07
    ADDRESS_TYPE_NOT_SUPPORTED = 0x08


class AuthStatus(IntEnum):
    SUCCESS = 0x00
    FAILURE = 0x01


class ByteStream(Protocol):
    """Duplex byte stream with blocking reads and writes.

    ``socket.socket`` satisfies it.
    """

    def recv(self, size: int, /) -> bytes: ...

    def sendall(self, data: bytes, /) -> None: ...

    def close(self) -> None: ...


def read_exact(stream: ByteStream, size: int) -> bytes:
    """Read exactly ``size`` bytes from the stream.

    Args:
        stream: Stream to read from
        size: Number of bytes to read

    Returns:
        bytes: A fresh buffer of length ``size``

    Raises:
        StreamClosedError: If the stream ends before ``size`` bytes arrive
        ProxyIOError: If the underlying read fails
    """
    buf = bytearray()
    while len(buf) < size:
        try:
            chunk = stream.recv(size - len(buf))
        except OSError as e:
            raise ProxyIOError(f"read failed: {e}") from e
        if not chunk:
            raise StreamClosedError(size, len(buf))
        buf += chunk
    return bytes(buf)


def read_byte(stream: ByteStream) -> int:
    """Read a single unsigned byte."""
    return read_exact(stream, 1)[0]


def read_port(stream: ByteStream) -> int:
    """Read a 2-byte big-endian port."""
    return _PORT.unpack(read_exact(stream, PORT_LENGTH))[0]


def pack_port(port: int) -> bytes:
    """Encode a port as 2 big-endian bytes."""
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range: {port}")
    return _PORT.pack(port)


def write_all(stream: ByteStream, data: bytes) -> None:
    """Write the whole frame, reporting failures as ``ProxyIOError``."""
    try:
        stream.sendall(data)
    except OSError as e:
        raise ProxyIOError(f"write failed: {e}") from e

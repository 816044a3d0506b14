"""Client request parsing and server reply encoding.

Request and reply share one layout::

    +----+-----+-------+------+----------+----------+
    |VER | CMD |  RSV  | ATYP | DST.ADDR | DST.PORT |
    +----+-----+-------+------+----------+----------+
    | 1  |  1  | X'00' |  1   | Variable |    2     |
    +----+-----+-------+------+----------+----------+

In a reply the second byte is the status (REP) and the address is the
locally bound address of the outbound connection.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass

from socks5_gateway.core.exceptions import (
    InvalidReservedFieldError,
    ProtocolVersionError,
    UnsupportedAddressTypeError,
    UnsupportedCommandError,
)
from socks5_gateway.core.lib.protocol import (
    IPV4_LENGTH,
    IPV6_LENGTH,
    RESERVED,
    SOCKS_VERSION,
    AddressType,
    ByteStream,
    Command,
    ReplyStatus,
    pack_port,
    read_byte,
    read_exact,
    read_port,
    write_all,
)

MAX_DOMAIN_LENGTH = 255

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


@dataclass(frozen=True)
class RequestMessage:
    command: Command
    address_type: AddressType
    address: str
    port: int

    @property
    def target(self) -> str:
        if self.address_type is AddressType.IPV6:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class ReplyMessage:
    status: ReplyStatus
    bound_address: bytes = bytes(IPV4_LENGTH)
    bound_port: int = 0

    def encode(self) -> bytes:
        if len(self.bound_address) == IPV4_LENGTH:
            address_type = AddressType.IPV4
        elif len(self.bound_address) == IPV6_LENGTH:
            address_type = AddressType.IPV6
        else:
            raise ValueError(f"bound address must be 4 or 16 bytes, got {len(self.bound_address)}")
        header = bytes((SOCKS_VERSION, self.status, RESERVED, address_type))
        return header + self.bound_address + pack_port(self.bound_port)


def _parse_command(value: int) -> Command:
    try:
        return Command(value)
    except ValueError:
        raise UnsupportedCommandError(
            f"request command not supported: {value:#04x}",
            reply=ReplyStatus.COMMAND_NOT_SUPPORTED,
        ) from None


def _parse_address_type(value: int) -> AddressType:
    try:
        return AddressType(value)
    except ValueError:
        raise UnsupportedAddressTypeError(
            f"address type not supported: {value:#04x}",
            reply=ReplyStatus.ADDRESS_TYPE_NOT_SUPPORTED,
        ) from None


def _read_address(stream: ByteStream, address_type: AddressType) -> str:
    match address_type:
        case AddressType.IPV4:
            return str(ipaddress.IPv4Address(read_exact(stream, IPV4_LENGTH)))
        case AddressType.IPV6:
            return str(ipaddress.IPv6Address(read_exact(stream, IPV6_LENGTH)))
        case AddressType.DOMAIN:
            length = read_byte(stream)
            return read_exact(stream, length).decode("utf-8", errors="replace")


def read_request(stream: ByteStream) -> RequestMessage:
    """Read a client request.

    The four header bytes are validated before any address byte is read.

    Raises:
        ProtocolVersionError: Version byte is not 5
        UnsupportedCommandError: Command byte is not CONNECT, BIND or UDP ASSOCIATE
        InvalidReservedFieldError: Reserved byte is not zero
        UnsupportedAddressTypeError: Address type is not IPv4, domain or IPv6
    """
    version, command, reserved, address_type = read_exact(stream, 4)
    if version != SOCKS_VERSION:
        raise ProtocolVersionError(version)
    cmd = _parse_command(command)
    if reserved != RESERVED:
        raise InvalidReservedFieldError(f"invalid reserved field: {reserved:#04x}")
    atyp = _parse_address_type(address_type)

    address = _read_address(stream, atyp)
    port = read_port(stream)
    return RequestMessage(command=cmd, address_type=atyp, address=address, port=port)


def encode_request(message: RequestMessage) -> bytes:
    """Encode a request the way a client sends it."""
    match message.address_type:
        case AddressType.IPV4:
            address = ipaddress.IPv4Address(message.address).packed
        case AddressType.IPV6:
            address = ipaddress.IPv6Address(message.address).packed
        case AddressType.DOMAIN:
            domain = message.address.encode("utf-8")
            if len(domain) > MAX_DOMAIN_LENGTH:
                raise ValueError(f"domain too long: {len(domain)} bytes")
            address = bytes((len(domain),)) + domain
    header = bytes((SOCKS_VERSION, message.command, RESERVED, message.address_type))
    return header + address + pack_port(message.port)


def pack_address(address: str | bytes | IPAddress) -> bytes:
    """Return the packed form of an IP address given as text, bytes or object."""
    if isinstance(address, bytes):
        return address
    if isinstance(address, str):
        address = ipaddress.ip_address(address.split("%", 1)[0])
    return address.packed


def write_success(stream: ByteStream, bound_address: str | bytes | IPAddress, bound_port: int) -> None:
    """Write a success reply carrying the bound address and port.

    Raises:
        ValueError: If the packed address is neither 4 nor 16 bytes
        ProxyIOError: If the write fails
    """
    reply = ReplyMessage(ReplyStatus.SUCCESS, pack_address(bound_address), bound_port)
    write_all(stream, reply.encode())


def write_failure(stream: ByteStream, status: ReplyStatus) -> None:
    """Write a fixed-shape failure reply: IPv4 type, zero address and port."""
    write_all(stream, ReplyMessage(status).encode())

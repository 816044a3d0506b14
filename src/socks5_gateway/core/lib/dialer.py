"""Outbound connections to CONNECT targets.

The connect timeout bounds resolution and the dial together. Once connected,
the socket is put back into blocking mode for the relay.
"""

from __future__ import annotations

import errno
import ipaddress
import socket
import time
from collections.abc import Callable

from socks5_gateway.core.exceptions import DialError, DNSResolutionError, DNSTimeoutError
from socks5_gateway.core.lib.dns_handler import dns_resolver
from socks5_gateway.core.lib.protocol import ReplyStatus

Dialer = Callable[[str, int, float], socket.socket]

_ERRNO_REPLIES = {
    errno.ECONNREFUSED: ReplyStatus.CONNECTION_REFUSED,
    errno.ENETUNREACH: ReplyStatus.NETWORK_UNREACHABLE,
    errno.EHOSTUNREACH: ReplyStatus.HOST_UNREACHABLE,
    errno.ETIMEDOUT: ReplyStatus.TTL_EXPIRED,
}


def reply_for_error(exc: BaseException) -> ReplyStatus:
    """Map a connect failure to the reply status sent to the client."""
    if isinstance(exc, DNSTimeoutError | TimeoutError):
        return ReplyStatus.TTL_EXPIRED
    if isinstance(exc, DNSResolutionError | socket.gaierror):
        return ReplyStatus.HOST_UNREACHABLE
    if isinstance(exc, OSError) and exc.errno in _ERRNO_REPLIES:
        return _ERRNO_REPLIES[exc.errno]
    return ReplyStatus.CONNECTION_REFUSED


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _remaining(deadline: float) -> float:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise TimeoutError("connect timeout exceeded")
    return remaining


def _connect_any(addresses: list[str], port: int, deadline: float) -> socket.socket:
    last_error: OSError = OSError(f"no addresses to connect to on port {port}")
    for address in addresses:
        try:
            return socket.create_connection((address, port), timeout=_remaining(deadline))
        except TimeoutError:
            raise
        except OSError as e:
            last_error = e
    raise last_error


def dial(host: str, port: int, timeout: float) -> socket.socket:
    """Connect to ``host:port`` within ``timeout`` seconds.

    The timeout covers name resolution as well as the connect. Domain names
    are resolved through the shared resolver and each resolved address is
    tried in order until one accepts.

    Raises:
        DialError: Carrying the reply status for the client
    """
    deadline = time.monotonic() + timeout
    try:
        if _is_ip_literal(host):
            addresses = [host]
        else:
            addresses = dns_resolver.resolve(host, timeout=_remaining(deadline))
        sock = _connect_any(addresses, port, deadline)
    except (OSError, DNSResolutionError) as e:
        raise DialError(f"connect to {host}:{port} failed: {e}", reply=reply_for_error(e)) from e
    sock.settimeout(None)
    return sock


def bound_address(sock: socket.socket) -> tuple[str, int]:
    """Return the local address and port of a connected socket."""
    host, port = sock.getsockname()[:2]
    return host, port

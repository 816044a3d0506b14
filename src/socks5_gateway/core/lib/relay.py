"""Bidirectional byte relay between the client and the target.

One daemon thread copies client to target while the calling thread copies
target to client. Whichever direction finishes first shuts the target down,
which makes the other direction's blocking read on the target return EOF.
Before returning, the client is shut down for reading so the upstream thread
exits and is joined. The target is always closed when ``relay`` returns; the
client itself stays open for the caller.
"""

from __future__ import annotations

import contextlib
import socket
import threading
from dataclasses import dataclass

from loguru import logger

from socks5_gateway.core.exceptions import ProxyIOError
from socks5_gateway.core.lib.proxy_stats import proxy_stats

BUFFER_SIZE = 4096


@dataclass
class RelayResult:
    """Bytes moved client to target (sent) and target to client (received)."""

    sent: int = 0
    received: int = 0


def _shutdown(sock: socket.socket) -> None:
    with contextlib.suppress(OSError):
        sock.shutdown(socket.SHUT_RDWR)


def _upstream(client: socket.socket, target: socket.socket, result: RelayResult) -> None:
    """Copy client to target until either side stops, then shut the target down."""
    try:
        while data := client.recv(BUFFER_SIZE):
            target.sendall(data)
            result.sent += len(data)
            proxy_stats.update_bytes(sent=len(data), received=0)
    except OSError as e:
        logger.debug(f"Upstream copy ended: {e}")
    finally:
        _shutdown(target)


def relay(client: socket.socket, target: socket.socket) -> RelayResult:
    """Relay bytes in both directions until one side closes.

    Args:
        client: Client connection, left open on return
        target: Established target connection; closed on return

    Returns:
        RelayResult: Byte counts for both directions

    Raises:
        ProxyIOError: If copying target to client fails with anything but EOF
    """
    result = RelayResult()
    upstream = threading.Thread(
        target=_upstream,
        args=(client, target, result),
        name="relay-upstream",
        daemon=True,
    )
    upstream.start()
    try:
        while data := target.recv(BUFFER_SIZE):
            client.sendall(data)
            result.received += len(data)
            proxy_stats.update_bytes(sent=0, received=len(data))
    except OSError as e:
        raise ProxyIOError(f"relay to client failed: {e}") from e
    finally:
        _shutdown(target)
        # wakes the upstream thread if it is still blocked reading the client
        with contextlib.suppress(OSError):
            client.shutdown(socket.SHUT_RD)
        upstream.join()
        target.close()
    return result

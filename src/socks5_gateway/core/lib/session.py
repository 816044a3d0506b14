"""Per-connection SOCKS5 state machine.

A session walks one client connection through::

    IDLE -> GREETED -> (AUTHENTICATING ->) AUTHENTICATED
         -> REQUEST_RECEIVED -> RELAYING -> CLOSED

Any failure jumps straight to CLOSED by raising. Request-stage failures that
the protocol answers (unsupported command, unsupported address type, dial
failure) get a best-effort failure reply first; a failed reply write is only
logged. Closing the client socket is left to the caller.
"""

from __future__ import annotations

import socket
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from socks5_gateway.core.config import ServerConfig
from socks5_gateway.core.exceptions import (
    ConfigError,
    DialError,
    ProxyIOError,
    RequestError,
    UnsupportedCommandError,
)
from socks5_gateway.core.lib.auth import authenticate
from socks5_gateway.core.lib.dialer import Dialer, bound_address, dial, reply_for_error
from socks5_gateway.core.lib.negotiation import negotiate
from socks5_gateway.core.lib.protocol import AuthMethod, Command, ReplyStatus
from socks5_gateway.core.lib.relay import RelayResult, relay
from socks5_gateway.core.lib.request import RequestMessage, read_request, write_failure, write_success

if TYPE_CHECKING:
    from loguru import Logger


class ConnectionState(Enum):
    IDLE = "idle"
    GREETED = "greeted"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REQUEST_RECEIVED = "request received"
    RELAYING = "relaying"
    CLOSED = "closed"


TransitionCallback = Callable[[ConnectionState, "RequestMessage | None"], None]


class Socks5Session:
    """Handle the handshake and relay for one client connection."""

    def __init__(
        self,
        stream: socket.socket,
        config: ServerConfig,
        dialer: Dialer = dial,
        log: Logger = logger,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        """Prepare a session.

        Args:
            stream: Connected client socket
            config: Validated server configuration
            dialer: Opens the outbound connection for CONNECT
            log: Event reporter, usually bound to the peer address
            on_transition: Called after every state change
        """
        self.stream = stream
        self.config = config
        self.dialer = dialer
        self.log = log
        self.on_transition = on_transition
        self.state = ConnectionState.IDLE
        self.request: RequestMessage | None = None
        self.username: bytes | None = None

    def _transition(self, state: ConnectionState) -> None:
        self.log.debug(f"{self.state.value} -> {state.value}")
        self.state = state
        if self.on_transition is not None:
            self.on_transition(state, self.request)

    def run(self) -> RelayResult:
        """Run the connection to completion.

        Returns:
            RelayResult: Bytes relayed in each direction

        Raises:
            ProxyError: On any handshake, dial or relay failure
        """
        try:
            self._handshake()
            target = self._connect(self.request)
            self._transition(ConnectionState.RELAYING)
            self.log.info(f"Relaying to {self.request.target}")
            result = relay(self.stream, target)
            self.log.info(
                f"Relay to {self.request.target} finished: "
                f"{result.sent} bytes sent, {result.received} bytes received"
            )
            return result
        finally:
            self._transition(ConnectionState.CLOSED)

    def _handshake(self) -> None:
        selection = negotiate(self.stream, self.config.auth_method)
        self._transition(ConnectionState.GREETED)

        match selection.method:
            case AuthMethod.PASSWORD:
                self._transition(ConnectionState.AUTHENTICATING)
                credentials = authenticate(self.stream, self.config.password_checker, log=self.log)
                self.username = credentials.username
                self.log.debug(f"Authenticated as {credentials.username!r}")
            case AuthMethod.NO_AUTH:
                pass
            case _:
                raise ConfigError(f"authentication method not supported: {selection.method.name}")
        self._transition(ConnectionState.AUTHENTICATED)

        self.request = self._read_request()
        self._transition(ConnectionState.REQUEST_RECEIVED)

    def _read_request(self) -> RequestMessage:
        try:
            request = read_request(self.stream)
        except RequestError as e:
            self._reply_failure(e.reply)
            raise

        match request.command:
            case Command.CONNECT:
                return request
            case Command.BIND | Command.UDP_ASSOCIATE:
                error = UnsupportedCommandError(
                    f"{request.command.name} to {request.target} not supported",
                    reply=ReplyStatus.COMMAND_NOT_SUPPORTED,
                )
                self._reply_failure(error.reply)
                raise error

    def _connect(self, request: RequestMessage) -> socket.socket:
        """Dial the target and send the success reply."""
        try:
            target = self.dialer(request.address, request.port, self.config.connect_timeout)
        except DialError as e:
            self._reply_failure(e.reply)
            raise
        except OSError as e:
            error = DialError(f"connect to {request.target} failed: {e}", reply=reply_for_error(e))
            self._reply_failure(error.reply)
            raise error from e

        try:
            host, port = bound_address(target)
            write_success(self.stream, host, port)
        except BaseException:
            target.close()
            raise
        return target

    def _reply_failure(self, status: ReplyStatus | None) -> None:
        if status is None:
            return
        try:
            write_failure(self.stream, status)
        except ProxyIOError as e:
            self.log.debug(f"Failure reply {status.name} not delivered: {e}")

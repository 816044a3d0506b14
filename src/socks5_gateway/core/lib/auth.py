"""Username/password sub-negotiation (RFC 1929).

Request::

    +----+------+----------+------+----------+
    |VER | ULEN |  UNAME   | PLEN |  PASSWD  |
    +----+------+----------+------+----------+
    | 1  |  1   | 1 to 255 |  1   | 1 to 255 |
    +----+------+----------+------+----------+

Reply is ``VER STATUS`` where status 0 means success.

The credential check itself is injected as a ``PasswordChecker``. One checker
instance serves every connection thread at once, so implementations must be
safe to call concurrently and should answer quickly: the client waits on it.
"""

from __future__ import annotations

import hmac
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from loguru import logger

from socks5_gateway.core.exceptions import AuthFailureError, AuthVersionError, ConfigError
from socks5_gateway.core.lib.protocol import (
    PASSWORD_AUTH_VERSION,
    AuthStatus,
    ByteStream,
    read_byte,
    read_exact,
    write_all,
)

if TYPE_CHECKING:
    from loguru import Logger


@runtime_checkable
class PasswordChecker(Protocol):
    """Credential check shared by all connections."""

    def check(self, username: bytes, password: bytes) -> bool: ...


@dataclass(frozen=True)
class PasswordCredentials:
    username: bytes
    password: bytes = field(repr=False)


class StaticPasswordChecker:
    """Checks credentials against a fixed user table.

    The table is frozen at construction, so concurrent ``check`` calls share
    no mutable state. Passwords are compared in constant time.
    """

    def __init__(self, users: Mapping[bytes, bytes]) -> None:
        self._users = MappingProxyType(dict(users))

    @classmethod
    def from_pairs(cls, pairs: Iterable[str]) -> StaticPasswordChecker:
        """Build a checker from ``user:password`` strings.

        Raises:
            ConfigError: If an entry has no colon or an empty username
        """
        users: dict[bytes, bytes] = {}
        for pair in pairs:
            username, sep, password = pair.partition(":")
            if not sep or not username:
                raise ConfigError(f"expected user:password, got {pair!r}")
            users[username.encode()] = password.encode()
        return cls(users)

    def __len__(self) -> int:
        return len(self._users)

    def check(self, username: bytes, password: bytes) -> bool:
        expected = self._users.get(username)
        if expected is None:
            return False
        return hmac.compare_digest(expected, password)


def read_password_credentials(stream: ByteStream) -> PasswordCredentials:
    """Read the sub-negotiation request.

    Raises:
        AuthVersionError: If the sub-negotiation version is not 1
    """
    version = read_byte(stream)
    if version != PASSWORD_AUTH_VERSION:
        raise AuthVersionError(version)
    username = read_exact(stream, read_byte(stream))
    password = read_exact(stream, read_byte(stream))
    return PasswordCredentials(username=username, password=password)


def write_auth_status(stream: ByteStream, status: AuthStatus) -> None:
    write_all(stream, bytes((PASSWORD_AUTH_VERSION, status)))


def authenticate(stream: ByteStream, checker: PasswordChecker, log: Logger = logger) -> PasswordCredentials:
    """Run the sub-negotiation and verify the credentials.

    A checker that raises counts as a rejection and is reported through
    ``log``, normally the connection's bound logger.

    Returns:
        PasswordCredentials: The accepted credentials

    Raises:
        AuthVersionError: On a malformed request (nothing written)
        AuthFailureError: After writing the failure status
    """
    credentials = read_password_credentials(stream)
    try:
        accepted = checker.check(credentials.username, credentials.password)
    except Exception:
        log.exception(f"Password checker raised for user {credentials.username!r}")
        accepted = False
    if not accepted:
        write_auth_status(stream, AuthStatus.FAILURE)
        raise AuthFailureError(f"authentication failed for user {credentials.username!r}")
    write_auth_status(stream, AuthStatus.SUCCESS)
    return credentials

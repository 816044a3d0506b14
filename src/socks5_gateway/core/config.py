"""Server configuration consumed by the connection handler."""

from __future__ import annotations

from dataclasses import dataclass

from socks5_gateway.core.exceptions import ConfigError
from socks5_gateway.core.lib.auth import PasswordChecker
from socks5_gateway.core.lib.protocol import AuthMethod

DEFAULT_CONNECT_TIMEOUT = 10.0  # seconds
SUPPORTED_METHODS = (AuthMethod.NO_AUTH, AuthMethod.PASSWORD)


@dataclass(frozen=True)
class ServerConfig:
    """Settings shared by every connection.

    Attributes:
        auth_method: The one method the server accepts
        password_checker: Credential check, required for ``AuthMethod.PASSWORD``
        connect_timeout: Upper bound on dialing the target, in seconds
    """

    auth_method: AuthMethod = AuthMethod.NO_AUTH
    password_checker: PasswordChecker | None = None
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT

    def validate(self) -> ServerConfig:
        """Check the settings are usable and return them.

        Raises:
            ConfigError: If the configuration cannot serve clients
        """
        if self.auth_method not in SUPPORTED_METHODS:
            raise ConfigError(f"authentication method not supported: {self.auth_method.name}")
        if self.auth_method is AuthMethod.PASSWORD and self.password_checker is None:
            raise ConfigError("password checker not set")
        if self.connect_timeout <= 0:
            raise ConfigError(f"connect timeout must be positive, got {self.connect_timeout}")
        return self

"""Public entry points of the gateway.

Example:
    from socks5_gateway.core.proxy import ServerConfig, create_proxy_server

    # Start a SOCKS5 gateway on localhost:1080 without authentication
    create_proxy_server("127.0.0.1", 1080, ServerConfig())
"""

from .config import ServerConfig
from .lib.auth import PasswordChecker, StaticPasswordChecker
from .lib.proxy_server import SocksProxy, create_proxy_server, run_server

__all__ = [
    "create_proxy_server",
    "PasswordChecker",
    "run_server",
    "ServerConfig",
    "SocksProxy",
    "StaticPasswordChecker",
]

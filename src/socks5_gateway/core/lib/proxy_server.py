"""Threaded SOCKS5 server.

``SocksProxy`` accepts connections and hands each one to ``SocksHandler`` on
its own thread. The handler binds a per-connection logger, runs a
``Socks5Session`` and always closes the client socket afterwards, whatever
the outcome.

Example:
    config = ServerConfig().validate()
    run_server("127.0.0.1", 1080, config)
"""

import contextlib
import itertools
import socket
import socketserver
import threading

import psutil
from loguru import logger
from rich.console import Console

from socks5_gateway.core.config import ServerConfig
from socks5_gateway.core.exceptions import AuthFailureError, ConfigError, NoAcceptableMethodError, ProxyError
from socks5_gateway.core.lib.dialer import Dialer, dial
from socks5_gateway.core.lib.proxy_stats import proxy_stats
from socks5_gateway.core.lib.session import Socks5Session
from socks5_gateway.core.utils.prompt.proxy_ui import create_proxy_ui
from socks5_gateway.core.utils.prompt.socks_ui import socks_ui

console = Console()

WILDCARD_HOSTS = ("", "0.0.0.0", "::")

_connection_ids = itertools.count(1)


class SocksProxy(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """SOCKS5 server with one handler thread per connection."""

    allow_reuse_address = True
    daemon_threads = True
    request_queue_size = 100

    def __init__(
        self,
        server_address: tuple[str, int],
        config: ServerConfig,
        dialer: Dialer = dial,
        bind_and_activate: bool = True,
    ) -> None:
        self.config = config.validate()
        self.dialer = dialer
        if ":" in server_address[0]:
            self.address_family = socket.AF_INET6
        super().__init__(server_address, SocksHandler, bind_and_activate)

    def shutdown_request(self, request: socket.socket) -> None:
        """Shut the client down in both directions so relay threads wake up."""
        with contextlib.suppress(OSError):
            request.shutdown(socket.SHUT_RDWR)
        self.close_request(request)


class SocksHandler(socketserver.BaseRequestHandler):
    """Handle one incoming SOCKS5 connection."""

    server: SocksProxy

    def handle(self) -> None:
        client_addr = self.client_address
        log = logger.bind(peer=f"{client_addr[0]}:{client_addr[1]}", conn_id=next(_connection_ids))
        socks_ui.connection_started(client_addr)
        proxy_stats.connection_started()
        session = Socks5Session(
            self.request,
            self.server.config,
            dialer=self.server.dialer,
            log=log,
            on_transition=lambda state, request: socks_ui.connection_updated(client_addr, state, request),
        )
        try:
            session.run()
        except (NoAcceptableMethodError, AuthFailureError) as e:
            proxy_stats.connection_failed(type(e).__name__)
            log.info(f"Client rejected: {e}")
        except ProxyError as e:
            proxy_stats.connection_failed(type(e).__name__)
            log.warning(f"Connection failed in state {session.state.value}: {e}")
        except OSError as e:
            proxy_stats.connection_failed(type(e).__name__)
            log.warning(f"Socket error: {e}")
        except Exception:
            proxy_stats.connection_failed("internal")
            log.exception("Error handling SOCKS connection")
        finally:
            socks_ui.connection_ended(client_addr)
            proxy_stats.connection_ended()


def is_local_address(ip: str) -> bool:
    """Check whether ``ip`` is assigned to a local interface (or a wildcard)."""
    if ip in WILDCARD_HOSTS:
        return True
    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family in (socket.AF_INET, socket.AF_INET6) and addr.address.split("%", 1)[0] == ip:
                return True
    return False


def run_server(
    host: str,
    port: int,
    config: ServerConfig,
    ready: threading.Event | None = None,
) -> None:
    """Serve connections until interrupted.

    Args:
        host: Host address to bind to
        port: Port number to listen on
        config: Server configuration
        ready: Set once the listening socket is bound
    """
    server: SocksProxy | None = None
    try:
        server = SocksProxy((host, port), config)
        bound_host, bound_port = server.server_address[:2]
        logger.info(f"Server started on {bound_host}:{bound_port} (auth: {config.auth_method.name})")
        if ready is not None:
            ready.set()
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server stopping")
    finally:
        if server:
            server.server_close()
            logger.info("Server closed")


def create_proxy_server(host: str, port: int, config: ServerConfig, show_ui: bool = False) -> None:
    """Validate the setup and run the gateway in the foreground.

    Args:
        host: Host address to bind to
        port: Port number to listen on
        config: Server configuration
        show_ui: Display the live statistics panel

    Raises:
        ConfigError: If the configuration or listen address is unusable
    """
    config.validate()
    if not is_local_address(host):
        raise ConfigError(f"{host} is not assigned to any local interface")

    if show_ui:
        create_proxy_ui(host, port).start()

    console.print(f"[bold green]SOCKS5 gateway listening on {host}:{port}")
    run_server(host, port, config)

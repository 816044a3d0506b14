import socket
import threading

import pytest

from socks5_gateway.core.config import ServerConfig
from socks5_gateway.core.lib.proxy_server import SocksProxy


@pytest.fixture
def echo_backend():
    """TCP server on loopback that echoes every connection until EOF."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind(("127.0.0.1", 0))
        listener.listen(8)
        listener.settimeout(0.2)
        stop = threading.Event()

        def echo(conn: socket.socket) -> None:
            with conn:
                while data := conn.recv(4096):
                    conn.sendall(data)

        def serve() -> None:
            while not stop.is_set():
                try:
                    conn, _ = listener.accept()
                except socket.timeout:
                    continue
                except OSError:
                    return
                threading.Thread(target=echo, args=(conn,), daemon=True).start()

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()
        try:
            yield listener.getsockname()
        finally:
            stop.set()
            thread.join(timeout=1.0)


@pytest.fixture
def start_proxy():
    """Factory fixture: start a SocksProxy on an ephemeral loopback port."""
    servers: list[SocksProxy] = []

    def start(config: ServerConfig | None = None, **kwargs) -> tuple[str, int]:
        server = SocksProxy(("127.0.0.1", 0), config or ServerConfig(), **kwargs)
        servers.append(server)
        threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True).start()
        return server.server_address[:2]

    yield start

    for server in servers:
        server.shutdown()
        server.server_close()


@pytest.fixture
def free_port() -> int:
    """A loopback port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]

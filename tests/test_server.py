import socket
import struct

import pytest
from helpers import recv_exact

from socks5_gateway.core.config import ServerConfig
from socks5_gateway.core.exceptions import ConfigError
from socks5_gateway.core.lib.auth import StaticPasswordChecker
from socks5_gateway.core.lib.dialer import dial
from socks5_gateway.core.lib.protocol import AuthMethod
from socks5_gateway.core.lib.proxy_server import SocksProxy, is_local_address
from socks5_gateway.core.lib.proxy_stats import proxy_stats


def connect(address: tuple[str, int]) -> socket.socket:
    sock = socket.create_connection(address, timeout=5.0)
    sock.settimeout(5.0)
    return sock


def connect_request(host: str, port: int) -> bytes:
    return b"\x05\x01\x00\x01" + socket.inet_aton(host) + struct.pack("!H", port)


def test_connect_and_relay_through_echo_backend(start_proxy, echo_backend) -> None:
    proxy = start_proxy()

    with connect(proxy) as client:
        client.sendall(b"\x05\x01\x00")
        assert recv_exact(client, 2) == b"\x05\x00"

        client.sendall(connect_request(*echo_backend))
        reply = recv_exact(client, 10)
        assert reply[:8] == b"\x05\x00\x00\x01\x7f\x00\x00\x01"
        assert struct.unpack("!H", reply[8:])[0] != 0

        client.sendall(b"hello through the gateway")
        assert recv_exact(client, 25) == b"hello through the gateway"


def test_password_authenticated_session(start_proxy, echo_backend) -> None:
    checker = StaticPasswordChecker.from_pairs(["alice:wonderland"])
    proxy = start_proxy(ServerConfig(AuthMethod.PASSWORD, checker))

    with connect(proxy) as client:
        client.sendall(b"\x05\x02\x00\x02")
        assert recv_exact(client, 2) == b"\x05\x02"
        client.sendall(b"\x01\x05alice\x0awonderland")
        assert recv_exact(client, 2) == b"\x01\x00"

        client.sendall(connect_request(*echo_backend))
        assert recv_exact(client, 10)[:2] == b"\x05\x00"
        client.sendall(b"ping")
        assert recv_exact(client, 4) == b"ping"


def test_rejected_password_closes_connection(start_proxy) -> None:
    checker = StaticPasswordChecker.from_pairs(["alice:wonderland"])
    proxy = start_proxy(ServerConfig(AuthMethod.PASSWORD, checker))

    with connect(proxy) as client:
        client.sendall(b"\x05\x01\x02\x01\x05alice\x05wrong")
        assert recv_exact(client, 4) == b"\x05\x02\x01\x01"
        assert client.recv(1) == b""


def test_bad_version_gets_no_reply(start_proxy) -> None:
    proxy = start_proxy()

    with connect(proxy) as client:
        client.sendall(b"\x04")
        assert client.recv(1) == b""


def test_refused_target_gets_failure_reply(start_proxy, free_port) -> None:
    proxy = start_proxy()

    with connect(proxy) as client:
        client.sendall(b"\x05\x01\x00")
        assert recv_exact(client, 2) == b"\x05\x00"
        client.sendall(connect_request("127.0.0.1", free_port))
        assert recv_exact(client, 10) == b"\x05\x05\x00\x01" + bytes(6)
        assert client.recv(1) == b""


def test_domain_target_uses_injected_dialer(start_proxy, echo_backend) -> None:
    dialed: list[tuple[str, int]] = []

    def local_dialer(host: str, port: int, timeout: float) -> socket.socket:
        dialed.append((host, port))
        return dial(*echo_backend, timeout)

    proxy = start_proxy(dialer=local_dialer)

    with connect(proxy) as client:
        client.sendall(b"\x05\x01\x00" + b"\x05\x01\x00\x03\x0bexample.com\x00\x50")
        assert recv_exact(client, 2) == b"\x05\x00"
        assert recv_exact(client, 10)[:2] == b"\x05\x00"
        client.sendall(b"abc")
        assert recv_exact(client, 3) == b"abc"

    assert dialed == [("example.com", 80)]


def test_client_close_ends_connection(start_proxy, echo_backend) -> None:
    proxy = start_proxy()
    total_before = proxy_stats.total_connections

    client = connect(proxy)
    client.sendall(b"\x05\x01\x00" + connect_request(*echo_backend))
    assert recv_exact(client, 12)[:4] == b"\x05\x00\x05\x00"
    client.close()

    assert proxy_stats.total_connections > total_before


def test_concurrent_clients(start_proxy, echo_backend) -> None:
    proxy = start_proxy()
    clients = [connect(proxy) for _ in range(5)]
    try:
        for client in clients:
            client.sendall(b"\x05\x01\x00" + connect_request(*echo_backend))
        for client in clients:
            assert recv_exact(client, 12)[:4] == b"\x05\x00\x05\x00"
        for index, client in enumerate(clients):
            client.sendall(f"client-{index}".encode())
        for index, client in enumerate(clients):
            assert recv_exact(client, 8) == f"client-{index}".encode()
    finally:
        for client in clients:
            client.close()


def test_server_refuses_invalid_config() -> None:
    with pytest.raises(ConfigError):
        SocksProxy(("127.0.0.1", 0), ServerConfig(AuthMethod.PASSWORD), bind_and_activate=False)


def test_is_local_address() -> None:
    assert is_local_address("127.0.0.1")
    assert is_local_address("0.0.0.0")
    assert not is_local_address("203.0.113.77")

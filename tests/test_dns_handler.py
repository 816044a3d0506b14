import socket
import time

import dns.resolver
import pytest

from socks5_gateway.core.exceptions import DNSResolutionError, DNSTimeoutError
from socks5_gateway.core.lib import dns_handler
from socks5_gateway.core.lib.dns_handler import DNSResolver


def _answers(*addresses: str):
    def fake_getaddrinfo(host, port, *args, **kwargs):
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (address, 0)) for address in addresses]

    return fake_getaddrinfo


def _system_fails(*args, **kwargs):
    raise socket.gaierror(-2, "Name or service not known")


def test_system_resolution_is_cached(monkeypatch) -> None:
    calls: list[str] = []

    def fake_getaddrinfo(host, port, *args, **kwargs):
        calls.append(host)
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("93.184.216.34", 0))]

    monkeypatch.setattr(dns_handler.socket, "getaddrinfo", fake_getaddrinfo)
    resolver = DNSResolver()

    assert resolver.resolve("example.com") == ["93.184.216.34"]
    assert resolver.resolve("example.com") == ["93.184.216.34"]
    assert calls == ["example.com"]


def test_all_addresses_are_returned_in_order(monkeypatch) -> None:
    monkeypatch.setattr(
        dns_handler.socket, "getaddrinfo", _answers("2001:db8::1", "192.0.2.10", "2001:db8::1", "192.0.2.11")
    )
    resolver = DNSResolver()

    assert resolver.resolve("multi.test") == ["2001:db8::1", "192.0.2.10", "192.0.2.11"]


def test_falls_back_to_nameservers(monkeypatch) -> None:
    monkeypatch.setattr(dns_handler.socket, "getaddrinfo", _system_fails)
    resolver = DNSResolver(nameservers=["192.0.2.53"])
    queried: list[list[str]] = []

    def fake_nameserver(domain: str, nameservers: list[str], deadline: float):
        queried.append(nameservers)
        return ["198.51.100.7"], 300

    monkeypatch.setattr(resolver, "_try_nameserver", fake_nameserver)

    assert resolver.resolve("fallback.test") == ["198.51.100.7"]
    assert queried == [["192.0.2.53"]]


def test_unresolvable_domain_raises(monkeypatch) -> None:
    monkeypatch.setattr(dns_handler.socket, "getaddrinfo", _system_fails)
    resolver = DNSResolver(nameservers=["192.0.2.53", "192.0.2.54"])
    monkeypatch.setattr(resolver, "_try_nameserver", lambda domain, nameservers, deadline: None)

    with pytest.raises(DNSResolutionError) as excinfo:
        resolver.resolve("missing.test")

    assert not isinstance(excinfo.value, DNSTimeoutError)


def test_clear_drops_cache(monkeypatch) -> None:
    answers = iter(["10.0.0.1", "10.0.0.2"])

    def fake_getaddrinfo(host, port, *args, **kwargs):
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (next(answers), 0))]

    monkeypatch.setattr(dns_handler.socket, "getaddrinfo", fake_getaddrinfo)
    resolver = DNSResolver()

    assert resolver.resolve("rotating.test") == ["10.0.0.1"]
    resolver.clear()
    assert resolver.resolve("rotating.test") == ["10.0.0.2"]


def test_cached_answers_expire(monkeypatch) -> None:
    answers = iter(["10.0.0.1", "10.0.0.2"])

    def fake_getaddrinfo(host, port, *args, **kwargs):
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (next(answers), 0))]

    monkeypatch.setattr(dns_handler.socket, "getaddrinfo", fake_getaddrinfo)
    resolver = DNSResolver(system_ttl=0.05)

    assert resolver.resolve("short.test") == ["10.0.0.1"]
    time.sleep(0.1)
    assert resolver.resolve("short.test") == ["10.0.0.2"]


def test_cache_evicts_least_recently_used(monkeypatch) -> None:
    calls: list[str] = []

    def fake_getaddrinfo(host, port, *args, **kwargs):
        calls.append(host)
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.1", 0))]

    monkeypatch.setattr(dns_handler.socket, "getaddrinfo", fake_getaddrinfo)
    resolver = DNSResolver(max_entries=2)

    resolver.resolve("a.test")
    resolver.resolve("b.test")
    resolver.resolve("a.test")
    resolver.resolve("c.test")
    resolver.resolve("a.test")
    resolver.resolve("b.test")

    assert calls == ["a.test", "b.test", "c.test", "b.test"]
    assert len(resolver._cache) == 2


def test_slow_system_resolver_is_bounded_by_timeout(monkeypatch) -> None:
    def slow_getaddrinfo(*args, **kwargs):
        time.sleep(2.0)
        raise socket.gaierror(-2, "Name or service not known")

    monkeypatch.setattr(dns_handler.socket, "getaddrinfo", slow_getaddrinfo)
    resolver = DNSResolver(nameservers=["192.0.2.1"])

    started = time.monotonic()
    with pytest.raises(DNSTimeoutError):
        resolver.resolve("slow.test", timeout=0.3)

    assert time.monotonic() - started < 1.0


def test_nameserver_lookups_get_remaining_budget(monkeypatch) -> None:
    monkeypatch.setattr(dns_handler.socket, "getaddrinfo", _system_fails)
    lifetimes: list[float] = []

    def fake_resolve(self, qname, rdtype, *args, **kwargs):
        lifetimes.append(self.lifetime)
        raise dns.resolver.NXDOMAIN

    monkeypatch.setattr(dns.resolver.Resolver, "resolve", fake_resolve)
    resolver = DNSResolver(nameservers=["192.0.2.1", "192.0.2.2"])

    with pytest.raises(DNSResolutionError):
        resolver.resolve("missing.test", timeout=0.5)

    assert lifetimes
    assert all(0 < lifetime <= 0.5 for lifetime in lifetimes)

"""DNS resolution for domain-name CONNECT targets using dnspython.

Lookups run against a deadline: the system resolver is tried first, then
dnspython against the configured nameservers, and every step only gets the
time left in the caller's budget. Answers are cached with an expiry taken
from the record TTL (or ``SYSTEM_TTL`` for system answers) in a bounded LRU.
"""

import socket
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, NoReturn, cast

import dns.exception
import dns.resolver
from loguru import logger

from socks5_gateway.core.exceptions import DNSResolutionError, DNSTimeoutError

if TYPE_CHECKING:
    from dns.resolver import Resolver

# DNS resolver constants
DEFAULT_TIMEOUT = 1.0  # seconds, per nameserver query
DEFAULT_LIFETIME = 3.0  # seconds, per lookup when no budget is given
DEFAULT_NAMESERVERS = [
    "1.1.1.1",  # Cloudflare
    "8.8.8.8",  # Google
    "9.9.9.9",  # Quad9
]
RECORD_TYPES = ("A", "AAAA")
SYSTEM_TTL = 60.0  # seconds
MAX_TTL = 3600.0  # seconds
MAX_CACHE_ENTRIES = 1024

# getaddrinfo cannot be interrupted, so it runs here and is waited on with a timeout
_system_lookups = ThreadPoolExecutor(max_workers=8, thread_name_prefix="dns-system")


def _make_resolver(nameservers: list[str], lifetime: float) -> "Resolver":
    resolver = cast("Resolver", dns.resolver.Resolver(configure=False))
    resolver.timeout = min(DEFAULT_TIMEOUT, lifetime)
    resolver.lifetime = lifetime
    resolver.nameservers = nameservers
    return resolver


def _unique(addresses) -> list[str]:
    return list(dict.fromkeys(addresses))


class DNSResolver:
    """Resolver that tries the system first, then public nameservers.

    Safe to share between connection threads: the cache is lock-protected and
    each dnspython lookup uses its own ``dns.resolver.Resolver``.
    """

    def __init__(
        self,
        nameservers: list[str] | None = None,
        max_entries: int = MAX_CACHE_ENTRIES,
        system_ttl: float = SYSTEM_TTL,
    ) -> None:
        """Initialize the DNS resolver.

        Args:
            nameservers: Fallback nameservers (default: public resolvers)
            max_entries: Cache size; the least recently used entry is dropped
            system_ttl: Cache lifetime of system resolver answers, in seconds
        """
        self.nameservers = list(nameservers or DEFAULT_NAMESERVERS)
        self.max_entries = max_entries
        self.system_ttl = system_ttl
        self._cache: OrderedDict[str, tuple[float, list[str]]] = OrderedDict()
        self._lock = threading.Lock()

    def _cached(self, domain: str) -> list[str] | None:
        with self._lock:
            entry = self._cache.get(domain)
            if entry is None:
                return None
            expires, addresses = entry
            if expires <= time.monotonic():
                del self._cache[domain]
                return None
            self._cache.move_to_end(domain)
            return list(addresses)

    def _remember(self, domain: str, addresses: list[str], ttl: float) -> list[str]:
        ttl = min(ttl, MAX_TTL)
        if ttl > 0:
            with self._lock:
                self._cache[domain] = (time.monotonic() + ttl, list(addresses))
                self._cache.move_to_end(domain)
                while len(self._cache) > self.max_entries:
                    self._cache.popitem(last=False)
        return addresses

    def _try_system_dns(self, domain: str, deadline: float) -> list[str] | None:
        """Try resolving using the system resolver."""
        future = _system_lookups.submit(socket.getaddrinfo, domain, None, type=socket.SOCK_STREAM)
        try:
            infos = future.result(timeout=max(deadline - time.monotonic(), 0))
        except TimeoutError:
            logger.debug(f"System DNS resolution timed out for {domain}")
            return None
        except (socket.gaierror, UnicodeError) as e:
            logger.debug(f"System DNS resolution failed for {domain}: {e}")
            return None
        return _unique(str(info[4][0]) for info in infos) or None

    def _try_nameserver(
        self, domain: str, nameservers: list[str], deadline: float
    ) -> tuple[list[str], float] | None:
        """Query A then AAAA records; return the addresses and the lowest TTL."""
        addresses: list[str] = []
        ttls: list[float] = []
        for record_type in RECORD_TYPES:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            resolver = _make_resolver(nameservers, remaining)
            try:
                answer = resolver.resolve(domain, record_type)
            except dns.exception.DNSException as e:
                logger.debug(f"{record_type} lookup via {nameservers} failed for {domain}: {e}")
                continue
            addresses.extend(str(record) for record in answer)
            ttls.append(answer.rrset.ttl)
        if not addresses:
            return None
        return _unique(addresses), min(ttls)

    def _try_alternative_nameservers(self, domain: str, deadline: float) -> tuple[list[str], float] | None:
        """Try each fallback nameserver on its own."""
        for nameserver in self.nameservers:
            if time.monotonic() >= deadline:
                return None
            if found := self._try_nameserver(domain, [nameserver], deadline):
                return found
        return None

    def _raise_dns_error(self, msg: str, deadline: float) -> NoReturn:
        if time.monotonic() >= deadline:
            raise DNSTimeoutError(msg)
        raise DNSResolutionError(msg)

    def resolve(self, domain: str, timeout: float = DEFAULT_LIFETIME) -> list[str]:
        """Resolve domain name to its IP addresses.

        Args:
            domain: Domain name to resolve
            timeout: Time budget for the whole lookup, in seconds

        Returns:
            list[str]: Resolved addresses, in preference order

        Raises:
            DNSTimeoutError: If the budget runs out first
            DNSResolutionError: If resolution fails
        """
        if (cached := self._cached(domain)) is not None:
            return cached

        deadline = time.monotonic() + timeout

        if addresses := self._try_system_dns(domain, deadline):
            return self._remember(domain, addresses, self.system_ttl)

        if found := self._try_nameserver(domain, self.nameservers, deadline):
            return self._remember(domain, *found)

        if len(self.nameservers) > 1 and (found := self._try_alternative_nameservers(domain, deadline)):
            return self._remember(domain, *found)

        error_msg = f"Could not resolve {domain} within {timeout:.1f}s using any available method"
        logger.warning(error_msg)
        self._raise_dns_error(error_msg, deadline)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


# Global resolver instance
dns_resolver = DNSResolver()

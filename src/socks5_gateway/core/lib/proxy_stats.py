"""Statistics tracking for the SOCKS5 gateway.

Counters are shared by every connection thread and guarded by one lock:
- Active and total connection counts
- Handshakes rejected, per exception type
- Bytes relayed in each direction, with a short bandwidth history

Example:
    from socks5_gateway.core.lib.proxy_stats import proxy_stats

    proxy_stats.connection_started()
    proxy_stats.update_bytes(sent=1024, received=2048)
"""

import threading
import time
from collections import Counter, deque
from datetime import UTC, datetime

BANDWIDTH_WINDOW = 5  # seconds


class ProxyStats:
    """Thread-safe statistics tracker for the gateway."""

    def __init__(self) -> None:
        """Initialize the tracker with zeroed counters."""
        self.active_connections = 0
        self.total_connections = 0
        self.total_bytes_sent = 0
        self.total_bytes_received = 0
        self.failures: Counter[str] = Counter()
        self.bandwidth_history: deque[tuple[int, float]] = deque(maxlen=600)
        self.start_time = datetime.now(tz=UTC)
        self._lock = threading.Lock()

    def update_bytes(self, sent: int, received: int) -> None:
        """Update byte transfer statistics.

        Args:
            sent: Bytes relayed from client to target
            received: Bytes relayed from target to client
        """
        with self._lock:
            self.total_bytes_sent += sent
            self.total_bytes_received += received
            self.bandwidth_history.append((sent + received, time.time()))

    def get_bandwidth(self) -> float:
        """Average bandwidth over the last few seconds, in bytes per second."""
        with self._lock:
            cutoff = time.time() - BANDWIDTH_WINDOW
            total_bytes = sum(bytes_ for bytes_, ts in self.bandwidth_history if ts > cutoff)
        return total_bytes / BANDWIDTH_WINDOW

    def connection_started(self) -> None:
        with self._lock:
            self.active_connections += 1
            self.total_connections += 1

    def connection_ended(self) -> None:
        with self._lock:
            self.active_connections -= 1

    def connection_failed(self, reason: str) -> None:
        """Count a connection that ended with an error."""
        with self._lock:
            self.failures[reason] += 1

    def top_failures(self, n: int = 5) -> list[tuple[str, int]]:
        with self._lock:
            return self.failures.most_common(n)

    def uptime(self) -> float:
        return (datetime.now(tz=UTC) - self.start_time).total_seconds()


# Global statistics object
proxy_stats = ProxyStats()

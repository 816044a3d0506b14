"""Live statistics panel for the gateway."""

import threading
import time

from rich.console import Group
from rich.panel import Panel
from rich.spinner import Spinner
from rich.text import Text

from socks5_gateway.core.lib.proxy_stats import proxy_stats
from socks5_gateway.core.utils.utils import format_bytes, format_duration

from .prompt import PromptHandler, console
from .socks_ui import socks_ui

BANDWIDTH_THRESHOLD = 100  # bytes


class ProxyUI(PromptHandler):
    """UI handler for the gateway."""

    def __init__(self, server_ip: str, port: int = 1080) -> None:
        """Initialize the proxy UI handler.

        Args:
            server_ip: IP address the gateway listens on
            port: Port number the gateway listens on
        """
        super().__init__()
        self.server_ip = server_ip
        self.port = port
        self.running = True
        self._last_bandwidth = 0.0
        self._start_time = time.monotonic()
        self._refresh_rate = 0.5
        self._spinner = Spinner("dots", text="")

    def _generate_stats(self):
        table = self._property_table()

        bandwidth = proxy_stats.get_bandwidth()
        if abs(bandwidth - self._last_bandwidth) > BANDWIDTH_THRESHOLD:
            self._last_bandwidth = bandwidth

        elapsed = time.monotonic() - self._start_time
        spinner_text = self._spinner.render(elapsed)

        table.add_row("Bandwidth", Text.assemble(spinner_text, f" {format_bytes(self._last_bandwidth)}/s"))
        table.add_row("Uptime", format_duration(proxy_stats.uptime()))
        table.add_row("Active Connections", str(proxy_stats.active_connections))
        table.add_row("Total Connections", str(proxy_stats.total_connections))
        table.add_row("Sent", format_bytes(proxy_stats.total_bytes_sent))
        table.add_row("Received", format_bytes(proxy_stats.total_bytes_received))
        for reason, count in proxy_stats.top_failures():
            table.add_row(f"Failed: {reason}", str(count))
        return table

    def _generate_display(self) -> Panel:
        """Generate the main display panel."""
        title = Text(f"SOCKS5 Gateway: {self.server_ip}:{self.port}", style="bold cyan")
        return Panel(
            Group(self._generate_stats(), Text(""), socks_ui.sessions_table()),
            title=title,
            subtitle="Press Ctrl+C to exit",
            border_style="blue",
            padding=(1, 2),
        )

    def run(self) -> None:
        """Refresh the panel until stopped."""
        console.clear()
        with self.create_live_display(self._generate_display()) as live:
            while self.running:
                live.update(self._generate_display(), refresh=True)
                time.sleep(self._refresh_rate)

    def stop(self) -> None:
        self.running = False


def create_proxy_ui(host: str, port: int) -> threading.Thread:
    """Create the UI thread; the caller starts it."""
    ui = ProxyUI(host, port)
    return threading.Thread(target=ui.run, name="proxy-ui", daemon=True)

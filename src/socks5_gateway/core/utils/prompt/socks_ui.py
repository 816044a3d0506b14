"""Tracking and display of live SOCKS sessions."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.table import Table

from socks5_gateway.core.utils.prompt.prompt import PromptHandler
from socks5_gateway.core.utils.utils import format_duration

if TYPE_CHECKING:
    from socks5_gateway.core.lib.request import RequestMessage
    from socks5_gateway.core.lib.session import ConnectionState

MAX_ROWS = 20


@dataclass
class SessionInfo:
    started: float
    state: str = "idle"
    target: str = "-"


class SocksUI(PromptHandler):
    """Keeps the state of every open connection for display."""

    def __init__(self) -> None:
        super().__init__()
        self._sessions: dict[tuple, SessionInfo] = {}
        self._lock = threading.Lock()

    def connection_started(self, addr: tuple) -> None:
        with self._lock:
            self._sessions[addr] = SessionInfo(started=time.monotonic())

    def connection_updated(self, addr: tuple, state: ConnectionState, request: RequestMessage | None) -> None:
        with self._lock:
            info = self._sessions.get(addr)
            if info is None:
                return
            info.state = state.value
            if request is not None:
                info.target = request.target

    def connection_ended(self, addr: tuple) -> None:
        with self._lock:
            self._sessions.pop(addr, None)

    def snapshot(self) -> dict[tuple, SessionInfo]:
        with self._lock:
            return {addr: SessionInfo(**vars(info)) for addr, info in self._sessions.items()}

    def sessions_table(self) -> Table:
        """Generate the open sessions table."""
        table = Table(box=None, padding=(0, 1))
        table.add_column("Client", style="cyan", no_wrap=True)
        table.add_column("Target", style="green", no_wrap=True)
        table.add_column("State", style="yellow", no_wrap=True)
        table.add_column("Age", style="magenta", no_wrap=True)

        now = time.monotonic()
        sessions = sorted(self.snapshot().items(), key=lambda item: item[1].started)
        for addr, info in sessions[:MAX_ROWS]:
            table.add_row(f"{addr[0]}:{addr[1]}", info.target, info.state, format_duration(now - info.started))
        if len(sessions) > MAX_ROWS:
            table.add_row(f"... {len(sessions) - MAX_ROWS} more", "", "", "")
        return table


# Global UI instance
socks_ui = SocksUI()

"""Core gateway implementation.

This package contains the components of the SOCKS5 gateway:
- Protocol framing, negotiation, authentication and request handling
- The bidirectional relay
- The threaded server and per-connection state machine
- Configuration and exceptions
- Statistics tracking and the terminal UI

The command line lives in ``socks5_gateway.cmd`` and only talks to the
facade in ``socks5_gateway.core.proxy``.
"""

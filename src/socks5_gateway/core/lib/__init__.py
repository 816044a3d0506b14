"""Core proxy library components.

Modules, leaf-first:
- protocol: constants, enums and exact-length framing
- negotiation, auth, request: the handshake stages
- dialer, dns_handler: outbound connections
- relay: the bidirectional copy
- session: the per-connection state machine
- proxy_server: the threaded server and request handler
"""

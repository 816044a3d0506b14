"""Local network interface discovery.

Used by the command line to list the addresses the gateway can listen on
and to turn an interface name into a listen address.

Example:
    interface = find_interface("eth0")
    if interface and interface.is_up:
        print(f"Listening on {interface.name} ({interface.ip})")
"""

import socket
from dataclasses import dataclass

import psutil


@dataclass
class NetworkInterface:
    """Network interface representation with its key properties.

    Attributes:
        name: Interface name (e.g., 'lo', 'eth0')
        ip: IPv4 address assigned to the interface
        is_up: Whether the interface is up
        is_loopback: Whether the address is a loopback address
    """

    name: str
    ip: str
    is_up: bool
    is_loopback: bool


def list_interfaces() -> list[NetworkInterface]:
    """Return every interface that has an IPv4 address, loopback first."""
    stats = psutil.net_if_stats()
    interfaces = []
    for name, addrs in psutil.net_if_addrs().items():
        ipv4 = next((addr.address for addr in addrs if addr.family == socket.AF_INET), None)
        if not ipv4:
            continue
        iface_stats = stats.get(name)
        interfaces.append(
            NetworkInterface(
                name=name,
                ip=ipv4,
                is_up=bool(iface_stats and iface_stats.isup),
                is_loopback=ipv4.startswith("127."),
            )
        )
    return sorted(interfaces, key=lambda iface: (not iface.is_loopback, iface.name))


def find_interface(name: str) -> NetworkInterface | None:
    """Look up an interface by name."""
    return next((iface for iface in list_interfaces() if iface.name == name), None)

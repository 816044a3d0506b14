"""Command-line interface for the SOCKS5 gateway.

This module provides the main command-line interface, handling:
- Command-line argument parsing (with environment variable fallbacks)
- Configuration building and validation
- Logging setup
- Listing local interfaces
- Error reporting

Example:
    # Run from command line:
    $ socks5-gateway serve --port 1080 --user alice:secret
"""

import pyperclip
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from socks5_gateway import __version__
from socks5_gateway.core.config import DEFAULT_CONNECT_TIMEOUT
from socks5_gateway.core.exceptions import ConfigError
from socks5_gateway.core.lib.auth import StaticPasswordChecker
from socks5_gateway.core.lib.protocol import AuthMethod
from socks5_gateway.core.network import find_interface, list_interfaces
from socks5_gateway.core.proxy import ServerConfig, create_proxy_server
from socks5_gateway.core.utils.log_config import configure_logging

console = Console()
app = typer.Typer(help="SOCKS5 gateway with optional username/password authentication")

ENV_PREFIX = "SOCKS5_GATEWAY_"


@app.callback()
def version_callback():
    """Show version information."""
    console.print(f"[cyan]SOCKS5 Gateway v{__version__}[/cyan]")


def build_config(users: list[str], timeout: float) -> ServerConfig:
    """Build and validate the server configuration from CLI values.

    Any ``--user`` switches the gateway to username/password authentication.

    Raises:
        ConfigError: If a user entry or the timeout is invalid
    """
    if users:
        config = ServerConfig(
            auth_method=AuthMethod.PASSWORD,
            password_checker=StaticPasswordChecker.from_pairs(users),
            connect_timeout=timeout,
        )
    else:
        config = ServerConfig(auth_method=AuthMethod.NO_AUTH, connect_timeout=timeout)
    return config.validate()


def resolve_host(host: str, interface: str | None) -> str:
    """Return the listen address, taken from ``interface`` when given."""
    if interface is None:
        return host
    iface = find_interface(interface)
    if iface is None:
        raise ConfigError(f"no IPv4 interface named {interface}")
    if not iface.is_up:
        raise ConfigError(f"interface {interface} is down")
    return iface.ip


@app.command(name="serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", envvar=f"{ENV_PREFIX}HOST", help="Address to listen on"),
    port: int = typer.Option(1080, "--port", "-p", envvar=f"{ENV_PREFIX}PORT", help="Port to listen on"),
    interface: str | None = typer.Option(
        None, "--interface", "-i", help="Listen on this interface's IPv4 address instead of --host"
    ),
    users: list[str] = typer.Option(
        [], "--user", "-u", envvar=f"{ENV_PREFIX}USERS", help="Accepted user:password (repeatable)"
    ),
    timeout: float = typer.Option(
        DEFAULT_CONNECT_TIMEOUT, "--timeout", "-t", envvar=f"{ENV_PREFIX}TIMEOUT", help="Target connect timeout in seconds"
    ),
    ui: bool = typer.Option(False, "--ui/--no-ui", help="Show the live statistics panel"),
    copy_address: bool = typer.Option(False, "--copy-address", help="Copy the proxy URL to the clipboard"),
    debug: bool = typer.Option(False, "--debug", envvar=f"{ENV_PREFIX}DEBUG", help="Enable debug logging"),
):
    """Start the SOCKS5 gateway."""
    configure_logging("DEBUG" if debug else "INFO")

    try:
        config = build_config(users, timeout)
        listen_host = resolve_host(host, interface)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        console.print(f"[red]Error: {e}")
        raise typer.Exit(2) from e

    if copy_address:
        try:
            pyperclip.copy(f"socks5://{listen_host}:{port}")
            console.print("[bold green]Proxy address copied to clipboard")
        except pyperclip.PyperclipException as e:
            console.print(f"[yellow]Could not copy to clipboard: {e}")

    try:
        logger.info(f"Starting SOCKS5 gateway on {listen_host}:{port}")
        create_proxy_server(listen_host, port, config, show_ui=ui)
    except KeyboardInterrupt:
        logger.info("Shutting down SOCKS5 gateway")
    except (ConfigError, OSError) as e:
        logger.error(f"Error starting gateway: {e}")
        console.print(f"[red]Error: {e}")
        raise typer.Exit(1) from e


@app.command(name="interfaces")
def interfaces():
    """List local IPv4 interfaces the gateway can listen on."""
    table = Table(title="Network Interfaces")
    table.add_column("Name", style="cyan")
    table.add_column("Address", style="green")
    table.add_column("Status")

    found = list_interfaces()
    if not found:
        console.print("[red]No IPv4 interfaces found")
        raise typer.Exit(1)
    for iface in found:
        status = "[green]up" if iface.is_up else "[red]down"
        table.add_row(iface.name, iface.ip, status)
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

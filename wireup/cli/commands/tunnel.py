# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Tunnel commands - validate configs, connect, inspect and clean up."""

import sys
import threading
from pathlib import Path
from typing import Optional

import click
from rich.markup import escape
from rich.table import Table

from wireup.cli import cli
from wireup.cli.helpers import (
    _apply_credentials,
    _load_tunnel_config,
    _state_line,
    console,
    handle_errors,
)
from wireup.docker.client import DockerClient
from wireup.docker.manager import DockerManager, remove_stale_staging_dirs
from wireup.host_config import get_config
from wireup.utils import ip_verifier
from wireup.vpn.config import VpnType
from wireup.vpn.connection import ConnectionManager, ConnectionState

CONFIG_PATH = click.Path(exists=True, dir_okay=False, path_type=Path)
VPN_TYPE_CHOICE = click.Choice([t.value for t in VpnType])


@cli.command()
@click.argument("config_file", type=CONFIG_PATH)
@click.option("--type", "vpn_type", type=VPN_TYPE_CHOICE, help="Override type detection")
@handle_errors
def check(config_file: Path, vpn_type: Optional[str]):
    """Validate a WireGuard (.conf) or OpenVPN (.ovpn) config.

    Examples:
        wireup check wg0.conf
        wireup check office.ovpn
    """
    config = _load_tunnel_config(config_file, vpn_type)

    if not config.is_valid:
        console.print(f"[red]✗ {escape(config.summary())}[/red]")
        sys.exit(1)

    console.print(f"[green]✓ Valid {config.vpn_type.display_name} configuration[/green]")
    console.print(escape(config.summary()))
    if getattr(config, "requires_auth", False):
        console.print("[yellow]This config requires a username and password[/yellow]")


@cli.command()
@click.argument("config_file", type=CONFIG_PATH)
@click.option("--type", "vpn_type", type=VPN_TYPE_CHOICE, help="Override type detection")
@click.option("--username", help="OpenVPN username (auth-user-pass)")
@click.option("--password", help="OpenVPN password (prompted if omitted)")
@click.option("--totp", help="One-time code appended to the password")
@handle_errors
def connect(
    config_file: Path,
    vpn_type: Optional[str],
    username: Optional[str],
    password: Optional[str],
    totp: Optional[str],
):
    """Connect and keep the SOCKS5 proxy up until Ctrl+C.

    Examples:
        wireup connect wg0.conf
        wireup connect office.ovpn --username alice --totp 123456
    """
    config = _load_tunnel_config(config_file, vpn_type)
    if not config.is_valid:
        console.print(f"[red]✗ {escape(config.summary())}[/red]")
        sys.exit(1)
    _apply_credentials(config, username, password, totp)

    settings = get_config().model
    docker_manager = DockerManager(DockerClient(), settings)
    manager = ConnectionManager(docker_manager, settings=settings)

    tunnel_down = threading.Event()

    def _on_state(state: ConnectionState) -> None:
        detail = None
        if state is ConnectionState.CONNECTED:
            detail = manager.vpn_ip
        elif state is ConnectionState.ERROR:
            detail = manager.error_message
        console.print(_state_line(state.name, detail))
        if state in (ConnectionState.DISCONNECTED, ConnectionState.ERROR):
            tunnel_down.set()

    manager.add_state_change_listener(_on_state)

    try:
        manager.connect(config).wait()
        if manager.state is ConnectionState.CONNECTED:
            host, port = settings.docker.proxy_host, settings.docker.socks_port
            console.print(f"\n[green]Proxy ready:[/green] socks5h://{host}:{port}")
            console.print("[dim]Press Ctrl+C to disconnect[/dim]")
            while not tunnel_down.wait(1.0):
                pass
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted, disconnecting...[/yellow]")
    finally:
        failed = manager.state is ConnectionState.ERROR
        error_message = manager.error_message
        kept = manager.shutdown(keep_failed=not settings.behavior.cleanup_on_error)

    if failed:
        console.print(f"[red]✗ {escape(error_message or 'Connection failed')}[/red]")
        if kept:
            name = settings.docker.container_name
            console.print(f"[dim]Container kept for inspection: docker logs {name}[/dim]")
            console.print("[dim]Remove it with: wireup cleanup[/dim]")
        sys.exit(1)


@cli.command()
@handle_errors
def status():
    """Show whether the tunnel is up and which IP it exits from."""
    settings = get_config().model
    docker_settings = settings.docker
    verifier = settings.verifier
    client = DockerClient()

    container_ids = client.list_by_name(docker_settings.container_name)
    running = any(client.is_running(container_id) for container_id in container_ids)

    direct_ip = ip_verifier.get_current_ip(verifier.ip_check_url, verifier.timeout_seconds)
    tunnel_ip = "-"
    if running:
        tunnel_ip = ip_verifier.get_ip_through_proxy(
            docker_settings.proxy_host,
            docker_settings.socks_port,
            url=verifier.ip_check_url,
            timeout=verifier.timeout_seconds,
        )

    if running:
        container_status = "[green]Running[/green]"
    elif container_ids:
        container_status = "[yellow]Stopped[/yellow]"
    else:
        container_status = "[dim]Not found[/dim]"

    table = Table(title="wireup Status", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Container", f"{docker_settings.container_name} {container_status}")
    table.add_row("Proxy", f"socks5h://{docker_settings.proxy_host}:{docker_settings.socks_port}")
    table.add_row("Direct IP", escape(direct_ip))
    table.add_row("Tunnel IP", escape(tunnel_ip))
    console.print(table)

    if running and not ip_verifier.are_ips_different(direct_ip, tunnel_ip):
        console.print("[yellow]⚠ Tunnel IP could not be confirmed as different from direct IP[/yellow]")


@cli.command()
@handle_errors
def cleanup():
    """Remove the tunnel container and any leftover staged configs."""
    manager = DockerManager(DockerClient(), get_config().model)
    manager.cleanup()

    removed = remove_stale_staging_dirs()
    if removed:
        console.print(f"[dim]Removed {removed} stale staging director{'y' if removed == 1 else 'ies'}[/dim]")
    console.print("[green]✓ Cleanup complete[/green]")

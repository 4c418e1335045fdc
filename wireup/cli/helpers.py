# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Shared helpers for the wireup CLI."""

import functools
import sys
from pathlib import Path
from typing import Callable, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from wireup.utils.exceptions import EngineUnavailableError, WireUpError
from wireup.vpn.config import OpenVpnConfig, TunnelConfig, VpnType, parse_config

console = Console()

STATE_STYLES = {
    "DISCONNECTED": "dim",
    "CONNECTING": "yellow",
    "CONNECTED": "green",
    "ERROR": "red",
}


def show_error_panel(title: str, message: str, hint: Optional[str] = None) -> None:
    """Display a formatted error panel.

    Args:
        title: Panel title (shown in red)
        message: Main error message
        hint: Optional hint text (shown with blue "Hint:" prefix)
    """
    content = escape(message)
    if hint:
        content += f"\n\n[blue]Hint:[/blue] {hint}"
    console.print(Panel(content, title=f"[red]{title}[/red]", border_style="red"))


def handle_errors(func: Callable) -> Callable:
    """Decorator that wraps CLI commands with standard error handling.

    Catches exceptions, prints error with nice formatting, and exits with code 1.
    Special handling for:
    - EngineUnavailableError: Docker is not running or not reachable
    - WireUpError: Shows the error message in a panel
    - ClickException: Left to click
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SystemExit:
            raise
        except click.ClickException:
            raise
        except EngineUnavailableError as exc:
            console.print(f"[red]✗ Docker is not available: {escape(str(exc))}[/red]")
            console.print("[dim]Start Docker and try again.[/dim]")
            sys.exit(1)
        except WireUpError as exc:
            show_error_panel("wireup Error", str(exc))
            sys.exit(1)
        except Exception as exc:
            show_error_panel("Error", str(exc))
            sys.exit(1)

    return wrapper


def _load_tunnel_config(config_file: Path, vpn_type: Optional[str] = None) -> TunnelConfig:
    """Read and parse a tunnel config file.

    Args:
        config_file: Path to a .conf or .ovpn file
        vpn_type: Explicit type, overrides detection

    Raises:
        click.ClickException: The file could not be read.
    """
    try:
        raw = config_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise click.ClickException(f"Cannot read {config_file}: {e}")

    return parse_config(
        raw,
        vpn_type=VpnType(vpn_type) if vpn_type else None,
        filename=config_file.name,
    )


def _apply_credentials(
    config: TunnelConfig,
    username: Optional[str],
    password: Optional[str],
    totp: Optional[str],
) -> None:
    """Attach OpenVPN credentials, prompting for what is missing."""
    if not isinstance(config, OpenVpnConfig):
        return
    if not config.requires_auth and not username:
        return

    if not username:
        username = click.prompt("Username")
    if not password:
        password = click.prompt("Password", hide_input=True)
    config.set_credentials(username, password, totp or "")


def _state_line(state_name: str, detail: Optional[str] = None) -> str:
    style = STATE_STYLES.get(state_name, "white")
    line = f"[{style}]● {state_name}[/{style}]"
    if detail:
        line += f" [dim]{escape(detail)}[/dim]"
    return line

# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Tunnel image commands."""

import click

from wireup.cli import cli
from wireup.cli.helpers import console, handle_errors
from wireup.docker.client import DockerClient
from wireup.docker.manager import DockerManager
from wireup.host_config import get_config


@cli.command()
@click.option("--force", is_flag=True, help="Rebuild even if the image already exists")
@handle_errors
def build(force: bool):
    """Build the tunnel image (WireGuard, OpenVPN and a SOCKS5 server)."""
    manager = DockerManager(DockerClient(), get_config().model)

    if manager.image_exists() and not force:
        console.print(f"[green]Image {manager.image_ref} already exists[/green]")
        console.print("[dim]Use --force to rebuild[/dim]")
        return

    if force and manager.client.remove_image(manager.image_ref, force=True):
        console.print(f"[dim]Removed old image {manager.image_ref}[/dim]")

    manager.build_image()

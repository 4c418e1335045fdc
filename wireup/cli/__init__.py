# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""wireup CLI package."""

import click

from wireup import __version__
from wireup.utils.logging import configure_logging, log_startup_info


@click.group()
@click.version_option(version=__version__, prog_name="wireup")
@click.option("--debug", is_flag=True, help="Verbose output (also WIREUP_DEBUG=1)")
def cli(debug: bool):
    """wireup - WireGuard/OpenVPN tunnels exposed as a local SOCKS5 proxy."""
    if debug:
        configure_logging(debug=True, force=True)
    log_startup_info()


def main():
    """Main entry point."""
    cli()


from wireup.cli.commands import image  # noqa: E402,F401
from wireup.cli.commands import tunnel  # noqa: E402,F401

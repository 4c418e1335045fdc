# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Centralized path definitions for wireup.

This module provides a single source of truth for all paths used throughout
the wireup codebase. Paths are organized by context:

- HostPaths: Paths on the host machine (where the wireup CLI runs)
- ContainerPaths: Paths inside the tunnel container
- ContainerDefaults: Fixed names and ports (one tunnel per host)

Usage:
    from wireup.paths import HostPaths, ContainerPaths, ContainerDefaults

    config_file = HostPaths.config_file()
    wg_conf = ContainerPaths.WIREGUARD_CONFIG
    name = ContainerDefaults.CONTAINER_NAME
"""

import os
import tempfile
from pathlib import Path


class HostPaths:
    """Paths on the host machine where wireup runs."""

    # XDG config directory for wireup
    @staticmethod
    def config_dir() -> Path:
        """~/.config/wireup/"""
        xdg = os.getenv("XDG_CONFIG_HOME")
        if xdg:
            return Path(xdg) / "wireup"
        return Path.home() / ".config" / "wireup"

    @staticmethod
    def config_file() -> Path:
        """~/.config/wireup/config.yml"""
        return HostPaths.config_dir() / "config.yml"

    # XDG data directory
    @staticmethod
    def data_dir() -> Path:
        """~/.local/share/wireup/"""
        xdg = os.getenv("XDG_DATA_HOME")
        if xdg:
            return Path(xdg) / "wireup"
        return Path.home() / ".local" / "share" / "wireup"

    @staticmethod
    def log_dir() -> Path:
        """~/.local/share/wireup/logs/"""
        return HostPaths.data_dir() / "logs"

    @staticmethod
    def staging_root() -> Path:
        """Parent of the per-process staging directories (system temp dir)."""
        return Path(tempfile.gettempdir())

    # Prefix for mkdtemp() staging dirs holding config/auth files
    STAGING_PREFIX = "wireup-staging-"

    # Prefix for extracted Docker build contexts
    BUILD_CONTEXT_PREFIX = "wireup-dockerfile-"


class ContainerPaths:
    """Paths inside the tunnel container.

    These must match the locations baked into the Dockerfile and the
    entrypoint script shipped in wireup/dockerfile/.
    """

    WIREGUARD_CONFIG = "/etc/wireguard/wg0.conf"
    OPENVPN_CONFIG = "/etc/openvpn/client.conf"
    OPENVPN_AUTH = "/etc/openvpn/auth.txt"
    DANTE_CONFIG = "/etc/danted.conf"


class ContainerDefaults:
    """Default values for container configuration."""

    # Docker image
    IMAGE_NAME = "wireup-vpn"
    IMAGE_TAG = "latest"

    # Only one tunnel container may exist per host
    CONTAINER_NAME = "wireup-vpn-container"

    # SOCKS5 proxy published on the host
    PROXY_HOST = "127.0.0.1"
    SOCKS_PORT = 1080

    # Capabilities the tunnel drivers need
    CAPABILITIES = ("NET_ADMIN", "SYS_MODULE")

    @staticmethod
    def image_ref(name: str = IMAGE_NAME, tag: str = IMAGE_TAG) -> str:
        """Get the full image reference (name:tag)."""
        return f"{name}:{tag}"


def build_context_dir() -> Path:
    """Directory holding the packaged Dockerfile and helper configs."""
    return Path(__file__).parent / "dockerfile"

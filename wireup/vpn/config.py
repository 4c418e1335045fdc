# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Tunnel configuration parsing and validation.

Two variants share one surface (vpn_type, raw_config, is_valid,
error_message, summary()). Construction never raises; an unusable config
is reported through is_valid/error_message.
"""

import re
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from wireup.paths import ContainerPaths


class VpnType(Enum):
    """Tunnel protocol, with the container-side details for each."""

    WIREGUARD = "wireguard"
    OPENVPN = "openvpn"

    @property
    def container_config_path(self) -> str:
        if self is VpnType.OPENVPN:
            return ContainerPaths.OPENVPN_CONFIG
        return ContainerPaths.WIREGUARD_CONFIG

    @property
    def config_file_name(self) -> str:
        return Path(self.container_config_path).name

    @property
    def display_name(self) -> str:
        return "OpenVPN" if self is VpnType.OPENVPN else "WireGuard"


# Endpoint = host:port (host may be an IPv6 literal in brackets)
ENDPOINT_PATTERN = re.compile(r"^.+:\d+$")

REMOTE_PATTERN = re.compile(r"remote\s+(\S+)\s+(\d+)")

# Any one of these means the config carries its own certificate material
_EMBEDDED_CERT_TAGS = ("<ca>", "<cert>", "<key>")


class WireGuardConfig:
    """WireGuard configuration (wg-quick format)."""

    vpn_type = VpnType.WIREGUARD

    def __init__(self, raw_config: str):
        self._raw_config = raw_config
        self.interface: Dict[str, str] = {}
        self.peer: Dict[str, str] = {}
        self._error_message = self._parse()

    @property
    def raw_config(self) -> str:
        return self._raw_config

    @property
    def is_valid(self) -> bool:
        return self._error_message is None

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    def _parse(self) -> Optional[str]:
        """Parse sections and return the first validation error, if any."""
        if not self._raw_config or not self._raw_config.strip():
            return "Config is empty"

        section: Optional[Dict[str, str]] = None
        for line in self._raw_config.splitlines():
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            lowered = line.lower()
            if lowered == "[interface]":
                section = self.interface
                continue
            if lowered == "[peer]":
                section = self.peer
                continue

            if section is not None and "=" in line:
                key, value = line.split("=", 1)
                section[key.strip()] = value.strip()

        return self._validate()

    def _validate(self) -> Optional[str]:
        # Order matters: the first missing field is the one reported
        if "PrivateKey" not in self.interface:
            return "Missing PrivateKey in [Interface]"
        if "Address" not in self.interface:
            return "Missing Address in [Interface]"
        if "PublicKey" not in self.peer:
            return "Missing PublicKey in [Peer]"
        if "Endpoint" not in self.peer:
            return "Missing Endpoint in [Peer]"
        if not ENDPOINT_PATTERN.match(self.peer["Endpoint"]):
            return "Invalid Endpoint format (expected host:port)"
        return None

    def get_interface_value(self, key: str) -> Optional[str]:
        return self.interface.get(key)

    def get_peer_value(self, key: str) -> Optional[str]:
        return self.peer.get(key)

    @property
    def endpoint(self) -> Optional[str]:
        return self.peer.get("Endpoint")

    def summary(self) -> str:
        """Human-readable summary for display."""
        if not self.is_valid:
            return f"Invalid configuration: {self._error_message}"

        lines = [
            "WireGuard Config",
            f"Interface Address: {self.interface['Address']}",
            f"Endpoint: {self.peer['Endpoint']}",
        ]
        if "AllowedIPs" in self.peer:
            lines.append(f"Allowed IPs: {self.peer['AllowedIPs']}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"WireGuardConfig(valid={self.is_valid}, endpoint={self.endpoint!r})"


class OpenVpnConfig:
    """OpenVPN client configuration (.ovpn).

    Detection is substring based; directives are not fully parsed.
    Credentials for auth-user-pass are supplied separately and do not
    affect validity.
    """

    vpn_type = VpnType.OPENVPN

    def __init__(self, raw_config: str):
        self._raw_config = raw_config
        self.remote_endpoint = "Unknown"
        self.requires_auth = False
        self.username: Optional[str] = None
        self.password: Optional[str] = None
        self._error_message = self._parse()

    @property
    def raw_config(self) -> str:
        return self._raw_config

    @property
    def is_valid(self) -> bool:
        return self._error_message is None

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    def _parse(self) -> Optional[str]:
        raw = self._raw_config
        if not raw or not raw.strip():
            return "Configuration is empty"

        match = REMOTE_PATTERN.search(raw)
        if match:
            self.remote_endpoint = f"{match.group(1)}:{match.group(2)}"

        self.requires_auth = "auth-user-pass" in raw

        if "remote " not in raw:
            return "Missing 'remote' directive (VPN endpoint)"
        if "dev " not in raw:
            return "Missing 'dev' directive (e.g., 'dev tun')"

        has_embedded_certs = any(tag in raw for tag in _EMBEDDED_CERT_TAGS)
        if not has_embedded_certs and not self.requires_auth:
            return "Missing credentials (embedded <ca>/<cert>/<key> or auth-user-pass)"
        return None

    def set_credentials(self, username: str, password: str, totp: str = "") -> None:
        """Attach auth-user-pass credentials.

        A TOTP token, when given, is appended to the password; that is the
        format providers with static-challenge-less 2FA expect.
        """
        self.username = (username or "").strip() or None
        password = password or ""
        totp = (totp or "").strip()
        if password and totp:
            password = f"{password}{totp}"
        self.password = password or None

    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)

    @property
    def protocol(self) -> str:
        return "TCP" if "proto tcp" in self._raw_config else "UDP"

    def summary(self) -> str:
        """Human-readable summary for display."""
        if not self.is_valid:
            return f"Invalid OpenVPN Configuration: {self._error_message}"
        return f"OpenVPN Config\nEndpoint: {self.remote_endpoint}\nProtocol: {self.protocol}"

    def __repr__(self) -> str:
        return (
            f"OpenVpnConfig(valid={self.is_valid}, endpoint={self.remote_endpoint!r}, "
            f"requires_auth={self.requires_auth})"
        )


TunnelConfig = Union[WireGuardConfig, OpenVpnConfig]


def detect_vpn_type(raw_config: str, filename: Optional[str] = None) -> VpnType:
    """Guess the tunnel type from a file name, falling back to content."""
    if filename:
        suffix = Path(filename).suffix.lower()
        if suffix == ".ovpn":
            return VpnType.OPENVPN
        if suffix == ".conf":
            return VpnType.WIREGUARD

    if re.search(r"^\s*\[interface\]\s*$", raw_config or "", re.IGNORECASE | re.MULTILINE):
        return VpnType.WIREGUARD
    return VpnType.OPENVPN


def parse_config(
    raw_config: str,
    vpn_type: Optional[VpnType] = None,
    filename: Optional[str] = None,
) -> TunnelConfig:
    """Build the config variant for raw text.

    An explicit vpn_type wins over detection by file name or content.
    """
    if vpn_type is None:
        vpn_type = detect_vpn_type(raw_config, filename)
    if vpn_type is VpnType.OPENVPN:
        return OpenVpnConfig(raw_config)
    return WireGuardConfig(raw_config)

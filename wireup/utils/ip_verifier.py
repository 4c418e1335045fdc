# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""External IP lookups, direct and through the local SOCKS5 proxy.

Lookups never raise: failures come back as a string starting with
ERROR_SENTINEL so callers can log and compare results uniformly.
"""

from typing import Optional

import requests

IP_CHECK_URL = "https://api.ipify.org?format=text"
TIMEOUT_SECONDS = 30.0  # WireGuard handshakes can be slow on first packet

ERROR_SENTINEL = "Error"
UNKNOWN_IP = "Unknown"


def is_error(result: Optional[str]) -> bool:
    """Check whether a lookup result is the error sentinel."""
    return result is None or result.startswith(ERROR_SENTINEL)


def _fetch_ip(url: str, timeout: float, proxies: Optional[dict] = None) -> str:
    try:
        response = requests.get(url, proxies=proxies, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        return f"{ERROR_SENTINEL}: {e}"

    lines = response.text.strip().splitlines()
    return lines[0].strip() if lines else UNKNOWN_IP


def get_current_ip(url: str = IP_CHECK_URL, timeout: float = TIMEOUT_SECONDS) -> str:
    """Get the host's own external IP (no proxy)."""
    return _fetch_ip(url, timeout)


def get_ip_through_proxy(
    proxy_host: str,
    proxy_port: int,
    url: str = IP_CHECK_URL,
    timeout: float = TIMEOUT_SECONDS,
) -> str:
    """Get the external IP as seen through a SOCKS5 proxy.

    Uses socks5h so DNS is resolved on the tunnel side as well.
    """
    proxy = f"socks5h://{proxy_host}:{proxy_port}"
    return _fetch_ip(url, timeout, proxies={"http": proxy, "https": proxy})


def are_ips_different(ip1: Optional[str], ip2: Optional[str]) -> bool:
    """Check two lookup results are both real and differ."""
    if ip1 is None or ip2 is None:
        return False
    if is_error(ip1) or is_error(ip2):
        return False
    if ip1 == UNKNOWN_IP or ip2 == UNKNOWN_IP:
        return False
    return ip1 != ip2

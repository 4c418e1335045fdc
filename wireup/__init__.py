# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""wireup - WireGuard/OpenVPN tunnels in a Docker container, exposed as a local SOCKS5 proxy."""

__version__ = "0.2.0"

# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Post-start readiness check for the tunnel's SOCKS5 proxy.

A running container is not a working tunnel: the driver inside still has
to bring the interface up and the SOCKS daemon has to start forwarding.
"""

import time
from typing import Callable, Optional

from wireup.models.host_config import HostConfigModel
from wireup.utils import ip_verifier
from wireup.utils.exceptions import ProxyNotReadyError
from wireup.utils.logging import get_logger

logger = get_logger(__name__)

# (host, port) -> external IP or "Error: ..."
ProxyProbe = Callable[[str, int], str]


class ReadinessVerifier:
    """Grace period, then a bounded number of probes through the proxy."""

    def __init__(
        self,
        probe: Optional[ProxyProbe] = None,
        settings: Optional[HostConfigModel] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or HostConfigModel()
        self.probe = probe or self._default_probe
        self._sleep = sleep

    def _default_probe(self, host: str, port: int) -> str:
        verifier = self.settings.verifier
        return ip_verifier.get_ip_through_proxy(
            host, port, url=verifier.ip_check_url, timeout=verifier.timeout_seconds
        )

    @property
    def proxy_address(self):
        docker_settings = self.settings.docker
        return docker_settings.proxy_host, docker_settings.socks_port

    def wait_until_ready(self) -> str:
        """Block until the proxy forwards traffic.

        Returns:
            The external IP seen through the tunnel

        Raises:
            ProxyNotReadyError: Every attempt returned the error sentinel.
        """
        timing = self.settings.timing
        host, port = self.proxy_address
        attempts = timing.readiness_attempts

        logger.info("Waiting for SOCKS proxy to become ready...")
        self._sleep(timing.readiness_grace_seconds)

        result: Optional[str] = None
        for attempt in range(1, attempts + 1):
            logger.info(f"Verifying VPN connection (attempt {attempt}/{attempts})...")
            result = self.probe(host, port)

            if not ip_verifier.is_error(result):
                logger.info(f"VPN IP verified: {result}")
                return result

            if attempt < attempts:
                logger.warning(f"SOCKS proxy not ready yet: {result}")
                self._sleep(timing.readiness_retry_delay_seconds)

        raise ProxyNotReadyError(attempts, result)

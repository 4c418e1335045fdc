# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Pytest fixtures for wireup unit tests.

These tests never talk to a real Docker engine or the network: the engine
client is a MagicMock shaped like DockerClient and every sleep is a no-op.
"""

import os
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Keep test runs out of the user's real log file
os.environ.setdefault("WIREUP_LOG_FILE", str(Path(tempfile.gettempdir()) / "wireup_tests.log"))

from wireup.docker.client import DockerClient  # noqa: E402
from wireup.docker.manager import DockerManager  # noqa: E402
from wireup.host_config import reset_config  # noqa: E402
from wireup.models.host_config import HostConfigModel, TimingConfig  # noqa: E402
from wireup.paths import HostPaths  # noqa: E402
from wireup.vpn.config import OpenVpnConfig, WireGuardConfig  # noqa: E402

WIREGUARD_CONFIG = """\
# Example tunnel
[Interface]
PrivateKey = yAnz5TF+lXXJte14tji3zlMNq+hd2rYUIgJBgB3fBmk=
Address = 10.66.0.2/32
DNS = 1.1.1.1

[Peer]
PublicKey = xTIBA5rboUvnH4htodjb6e697QjLERt1NAB4mZqp8Dg=
Endpoint = vpn.example.com:51820
AllowedIPs = 0.0.0.0/0
"""

OPENVPN_CONFIG = """\
client
dev tun
proto udp
remote vpn.example.com 1194
auth-user-pass
"""

CONTAINER_ID = "c0ffee1234567890abcdef"


def no_sleep(seconds):
    """Stand-in for time.sleep."""


@pytest.fixture(autouse=True)
def isolated_host(tmp_path, monkeypatch):
    """Point config, data and staging paths into tmp_path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    staging_root = tmp_path / "staging"
    staging_root.mkdir()
    monkeypatch.setattr(HostPaths, "staging_root", staticmethod(lambda: staging_root))
    reset_config()
    yield staging_root
    reset_config()


@pytest.fixture
def settings():
    """Host settings with every wait shortened to zero."""
    return HostConfigModel(
        timing=TimingConfig(
            start_settle_seconds=0,
            readiness_grace_seconds=0,
            readiness_retry_delay_seconds=0,
            health_check_interval_seconds=0.01,
            reconnect_delay_seconds=0,
            log_wait_seconds=0.5,
        )
    )


@pytest.fixture
def fake_client():
    """DockerClient double for a healthy engine."""
    client = MagicMock(spec=DockerClient)
    client.image_exists.return_value = True
    client.remove_image.return_value = True
    client.build_image.return_value = "sha256:0123456789abcdef0123456789abcdef"
    client.create_container.return_value = CONTAINER_ID
    client.is_running.return_value = True
    client.list_by_name.return_value = []
    client.fetch_logs.return_value = "wg-quick: interface up\n"
    return client


@pytest.fixture
def docker_manager(fake_client, settings):
    return DockerManager(fake_client, settings, sleep=no_sleep)


@pytest.fixture
def wireguard_config():
    return WireGuardConfig(WIREGUARD_CONFIG)


@pytest.fixture
def openvpn_config():
    return OpenVpnConfig(OPENVPN_CONFIG)


@pytest.fixture
def wireguard_text():
    return WIREGUARD_CONFIG


@pytest.fixture
def openvpn_text():
    return OPENVPN_CONFIG

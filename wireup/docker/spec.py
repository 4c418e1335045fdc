# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Container specification for the tunnel container."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from wireup.models.host_config import DockerSettings
from wireup.paths import ContainerDefaults, ContainerPaths
from wireup.vpn.config import TunnelConfig


@dataclass(frozen=True)
class BindMount:
    """Host file bind-mounted into the container."""

    source: Path
    target: str
    mode: str = "ro"


@dataclass
class ContainerSpec:
    """Everything needed to create one tunnel container.

    Built fresh for every connect attempt and dropped once the container
    has been created.
    """

    image: str
    name: str
    mounts: List[BindMount] = field(default_factory=list)
    socks_port: int = 1080
    host_ip: str = "127.0.0.1"
    environment: Dict[str, str] = field(default_factory=dict)

    # Resource ceilings
    mem_limit: str = "512m"
    cpu_period: int = 100000
    cpu_quota: int = 50000
    pids_limit: int = 100

    privileged: bool = True
    cap_add: Tuple[str, ...] = ("NET_ADMIN", "SYS_MODULE")
    read_only: bool = False  # tunnel helper tooling writes to the rootfs

    # danted listens on a fixed port inside the container
    container_port: int = ContainerDefaults.SOCKS_PORT

    @property
    def port_key(self) -> str:
        return f"{self.container_port}/tcp"

    def to_create_kwargs(self) -> Dict[str, Any]:
        """Render as keyword arguments for docker's containers.create()."""
        volumes = {
            str(mount.source): {"bind": mount.target, "mode": mount.mode} for mount in self.mounts
        }
        return {
            "image": self.image,
            "name": self.name,
            "detach": True,
            "environment": dict(self.environment),
            "volumes": volumes,
            "ports": {self.port_key: (self.host_ip, self.socks_port)},
            "privileged": self.privileged,
            "cap_add": list(self.cap_add),
            "mem_limit": self.mem_limit,
            "cpu_period": self.cpu_period,
            "cpu_quota": self.cpu_quota,
            "pids_limit": self.pids_limit,
            "read_only": self.read_only,
        }


def build_container_spec(
    config: TunnelConfig,
    settings: DockerSettings,
    config_file: Path,
    auth_file: Optional[Path] = None,
) -> ContainerSpec:
    """Build the spec for a staged tunnel config.

    Args:
        config: Validated tunnel config
        settings: Image, naming and resource settings
        config_file: Host path of the staged config file
        auth_file: Host path of the staged OpenVPN auth file, if any
    """
    vpn_type = config.vpn_type
    mounts = [BindMount(Path(config_file), vpn_type.container_config_path)]
    if auth_file is not None:
        mounts.append(BindMount(Path(auth_file), ContainerPaths.OPENVPN_AUTH))

    return ContainerSpec(
        image=settings.image_ref,
        name=settings.container_name,
        mounts=mounts,
        socks_port=settings.socks_port,
        host_ip=settings.proxy_host,
        environment={"VPN_TYPE": vpn_type.value},
        mem_limit=settings.memory,
        cpu_period=settings.cpu_period,
        cpu_quota=settings.cpu_quota,
        pids_limit=settings.pids_limit,
        privileged=settings.privileged,
        cap_add=tuple(settings.capabilities),
    )

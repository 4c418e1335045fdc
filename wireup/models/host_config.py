# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Pydantic models for host configuration (~/.config/wireup/config.yml)."""

import re
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wireup.paths import ContainerDefaults


# Docker memory strings: 512m, 1g, 1073741824
VALID_MEMORY_PATTERN = re.compile(r"^\d+[bkmg]?$", re.IGNORECASE)

# Docker image name component (lowercase, digits, separators)
VALID_IMAGE_NAME_PATTERN = re.compile(r"^[a-z0-9]+(?:[._/-][a-z0-9]+)*$")


class DockerSettings(BaseModel):
    """Container image, naming and resource limits."""

    image_name: str = ContainerDefaults.IMAGE_NAME
    image_tag: str = ContainerDefaults.IMAGE_TAG
    container_name: str = ContainerDefaults.CONTAINER_NAME
    proxy_host: str = ContainerDefaults.PROXY_HOST
    socks_port: int = Field(default=ContainerDefaults.SOCKS_PORT, ge=1, le=65535)

    # Resource ceilings
    memory: str = "512m"
    cpu_period: int = 100000
    cpu_quota: int = 50000  # 0.5 CPU
    pids_limit: int = 100

    privileged: bool = True
    capabilities: List[str] = Field(default_factory=lambda: list(ContainerDefaults.CAPABILITIES))

    # Seconds to wait for graceful stop
    stop_timeout: int = 10
    orphan_stop_timeout: int = 5

    @field_validator("memory", mode="after")
    @classmethod
    def validate_memory(cls, value: str) -> str:
        """Validate Docker memory notation."""
        if not VALID_MEMORY_PATTERN.match(value):
            raise ValueError(f"Invalid memory limit '{value}' (expected e.g. 512m, 1g)")
        return value.lower()

    @field_validator("image_name", mode="after")
    @classmethod
    def validate_image_name(cls, value: str) -> str:
        """Validate image name is a legal Docker repository name."""
        if not VALID_IMAGE_NAME_PATTERN.match(value):
            raise ValueError(f"Invalid image name '{value}'")
        return value

    @property
    def image_ref(self) -> str:
        return ContainerDefaults.image_ref(self.image_name, self.image_tag)


class TimingConfig(BaseModel):
    """Settle intervals, retry policy and polling cadence (seconds)."""

    start_settle_seconds: float = 3.0
    readiness_grace_seconds: float = 10.0
    readiness_attempts: int = Field(default=3, ge=1)
    readiness_retry_delay_seconds: float = 5.0
    health_check_interval_seconds: float = 5.0
    reconnect_delay_seconds: float = 2.0
    log_wait_seconds: float = 5.0


class VerifierConfig(BaseModel):
    """Reachability probe settings."""

    ip_check_url: str = "https://api.ipify.org?format=text"
    timeout_seconds: float = 30.0


class BehaviorConfig(BaseModel):
    """Failure-handling policy.

    cleanup_on_error: tear down the container when a connect attempt fails.
                      Off by default so the failed container stays around
                      for `docker logs` inspection.
    """

    cleanup_on_error: bool = False


class HostConfigModel(BaseModel):
    """Main host configuration model."""

    version: str = "1.0"

    docker: DockerSettings = Field(default_factory=DockerSettings)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    verifier: VerifierConfig = Field(default_factory=VerifierConfig)
    behavior: BehaviorConfig = Field(default_factory=BehaviorConfig)

    model_config = ConfigDict(extra="allow")  # Allow extra fields for forward compatibility

# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Pydantic models for wireup configuration files."""

from wireup.models.host_config import (
    BehaviorConfig,
    DockerSettings,
    HostConfigModel,
    TimingConfig,
    VerifierConfig,
)

__all__ = [
    "BehaviorConfig",
    "DockerSettings",
    "HostConfigModel",
    "TimingConfig",
    "VerifierConfig",
]

# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Exceptions raised by the wireup orchestration core."""

from typing import Optional


class WireUpError(Exception):
    """Base exception for wireup errors."""


class ConfigInvalidError(WireUpError):
    """Raised when a connect attempt is made with an invalid tunnel config."""


class EngineError(WireUpError):
    """Raised when communication with the Docker engine fails."""


class EngineUnavailableError(EngineError):
    """Raised when the Docker engine cannot be reached at all."""


class ContainerNameConflict(EngineError):
    """Raised when a container with the requested name already exists."""


class ResourceNotFound(EngineError):
    """Raised when a container id or image tag no longer resolves."""


class ImageBuildError(WireUpError):
    """Raised when the tunnel image cannot be built."""


class ContainerStartError(WireUpError):
    """Raised when the tunnel container exits right after start."""

    def __init__(self, message: str, logs: str = ""):
        self.logs = logs
        if logs:
            message = f"{message}. Logs:\n{logs}"
        super().__init__(message)


class ProxyNotReadyError(WireUpError):
    """Raised when the SOCKS proxy never carried traffic."""

    def __init__(self, attempts: int, last_result: Optional[str]):
        self.attempts = attempts
        self.last_result = last_result
        super().__init__(
            f"Cannot connect through SOCKS proxy after {attempts} attempts: {last_result}"
        )


class ContainerCrashedError(WireUpError):
    """Raised (or recorded) when a connected tunnel container stops."""

    def __init__(self, message: str = "Container stopped unexpectedly"):
        super().__init__(message)

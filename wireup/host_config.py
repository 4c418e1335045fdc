"""Centralized host-side configuration for wireup."""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from wireup.models.host_config import HostConfigModel
from wireup.paths import HostPaths

logger = logging.getLogger(__name__)


class HostConfig:
    """Manages host-side configuration from ~/.config/wireup/config.yml."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or HostPaths.config_file()
        self._model: HostConfigModel = self._load()

    def _load(self) -> HostConfigModel:
        """Load configuration from file."""
        if not self.config_path.exists():
            # Use model defaults
            return HostConfigModel()

        try:
            with open(self.config_path) as f:
                raw_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config from {self.config_path}: {e}")
            return HostConfigModel()

        if not isinstance(raw_config, dict):
            logger.warning(f"Ignoring {self.config_path}: top level must be a mapping")
            return HostConfigModel()

        # Parse with Pydantic - it handles merging with defaults automatically
        try:
            return HostConfigModel.model_validate(raw_config)
        except ValidationError as e:
            logger.warning(f"Config validation errors: {e}")
            return HostConfigModel()

    @property
    def model(self) -> HostConfigModel:
        return self._model

    @property
    def docker(self):
        return self._model.docker

    @property
    def timing(self):
        return self._model.timing

    @property
    def verifier(self):
        return self._model.verifier

    @property
    def behavior(self):
        return self._model.behavior


# Singleton instance
_config: Optional[HostConfig] = None


def get_config() -> HostConfig:
    """Get the global host configuration."""
    global _config
    if _config is None:
        _config = HostConfig()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (next get_config() re-reads the file)."""
    global _config
    _config = None

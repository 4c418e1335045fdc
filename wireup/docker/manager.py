# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Container lifecycle management for the tunnel container."""

import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

from wireup.docker.client import DockerClient
from wireup.docker.spec import build_container_spec
from wireup.models.host_config import HostConfigModel
from wireup.paths import HostPaths, build_context_dir
from wireup.utils.exceptions import (
    ContainerNameConflict,
    ContainerStartError,
    EngineError,
    ImageBuildError,
)
from wireup.utils.logging import get_logger
from wireup.utils.security import secure_delete_directory, write_private_file
from wireup.vpn.config import OpenVpnConfig, TunnelConfig

logger = get_logger(__name__)

AUTH_FILE_NAME = "auth.txt"


class DockerManager:
    """Manages the single wireup tunnel container.

    Owns the container handle: at most one container exists at a time, and
    creating a new one always tears down the previous one first, including
    containers orphaned by an earlier crashed run (found by name).
    """

    def __init__(
        self,
        client: DockerClient,
        settings: Optional[HostConfigModel] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.settings = settings or HostConfigModel()
        self._sleep = sleep
        self._container_id: Optional[str] = None
        self._staging_dir: Optional[Path] = None

    @property
    def container_id(self) -> Optional[str]:
        return self._container_id

    @property
    def image_ref(self) -> str:
        return self.settings.docker.image_ref

    @property
    def container_name(self) -> str:
        return self.settings.docker.container_name

    @property
    def staging_dir(self) -> Path:
        """Process-private directory for config/auth files (mode 0700)."""
        if self._staging_dir is None or not self._staging_dir.exists():
            self._staging_dir = Path(
                tempfile.mkdtemp(prefix=HostPaths.STAGING_PREFIX, dir=HostPaths.staging_root())
            )
            logger.debug("Created staging directory (path redacted)")
        return self._staging_dir

    # ========== Image ==========

    def image_exists(self) -> bool:
        try:
            return self.client.image_exists(self.image_ref)
        except EngineError as e:
            logger.debug(f"Could not inspect image {self.image_ref}: {e}")
            return False

    def build_image(self) -> str:
        """Build the WireGuard/OpenVPN + SOCKS5 image from the packaged context.

        Returns:
            Built image id

        Raises:
            ImageBuildError: Context missing or the build failed.
        """
        logger.info(f"Building Docker image: {self.image_ref}")
        context_dir = self._extract_build_context()
        try:
            image_id = self.client.build_image(context_dir, self.image_ref)
        except EngineError as e:
            raise ImageBuildError(f"Failed to build image {self.image_ref}: {e}") from e
        finally:
            shutil.rmtree(context_dir, ignore_errors=True)

        logger.success(f"Docker image built: {image_id[:19]}")
        return image_id

    def ensure_image(self) -> None:
        """Build the image unless it already exists."""
        if self.image_exists():
            logger.debug(f"Image {self.image_ref} already exists (skipping build)")
            return
        logger.info("Image not found, building (first build may take 1-2 minutes)...")
        self.build_image()

    def _extract_build_context(self) -> Path:
        """Copy the packaged Dockerfile and helper configs to a temp dir."""
        source = build_context_dir()
        if not (source / "Dockerfile").exists():
            raise ImageBuildError(f"Dockerfile not found in build context: {source}")

        target = Path(
            tempfile.mkdtemp(prefix=HostPaths.BUILD_CONTEXT_PREFIX, dir=HostPaths.staging_root())
        )
        try:
            for item in source.iterdir():
                if item.is_file() and item.name != "__init__.py":
                    shutil.copy2(item, target / item.name)
                    logger.debug(f"Extracted build context file: {item.name}")
        except OSError as e:
            shutil.rmtree(target, ignore_errors=True)
            raise ImageBuildError(f"Failed to extract Dockerfile resources: {e}") from e
        return target

    # ========== Container ==========

    def create_and_start(self, config: TunnelConfig) -> str:
        """Create and start a tunnel container for a config.

        Args:
            config: Validated tunnel config

        Returns:
            Container id

        Raises:
            ImageBuildError: The image could not be built.
            ContainerStartError: The container exited right after start.
            EngineError: Any other engine failure (second name conflict included).
        """
        # Stale containers from a previous run (tracked or orphaned)
        self.stop_and_remove()

        # Always rebuild so the container reflects the current Dockerfile
        try:
            if self.client.remove_image(self.image_ref, force=True):
                logger.debug("Removed old image to force rebuild")
            else:
                logger.debug("No old image to remove")
        except EngineError as e:
            logger.debug(f"Could not remove old image: {e}")

        self.ensure_image()

        config_file, auth_file = self._stage_config(config)

        docker_settings = self.settings.docker
        spec = build_container_spec(config, docker_settings, config_file, auth_file)
        logger.security(
            f"Creating container with resource limits (memory={spec.mem_limit}, "
            f"cpu={spec.cpu_quota / spec.cpu_period:.2f}, pids={spec.pids_limit})"
        )
        logger.info(f"Creating container: {spec.name} ({config.vpn_type.value})")

        try:
            container_id = self.client.create_container(spec)
            logger.info(f"Container created: {container_id[:12]}")
        except ContainerNameConflict:
            logger.warning("Container name conflict detected - cleaning up old container")
            self.stop_and_remove()
            container_id = self.client.create_container(spec)
            logger.info(f"Container created after cleanup: {container_id[:12]}")

        self._container_id = container_id

        logger.info("Starting container...")
        self.client.start(container_id)

        self._sleep(self.settings.timing.start_settle_seconds)

        if not self.is_running():
            logs = self.get_logs()
            raise ContainerStartError("Container failed to start", logs)

        logger.success("Container started")
        return container_id

    def _stage_config(self, config: TunnelConfig) -> Tuple[Path, Optional[Path]]:
        """Write config (and OpenVPN auth file) with owner-only permissions."""
        staging = self.staging_dir
        config_file = write_private_file(
            staging / config.vpn_type.config_file_name, config.raw_config
        )
        logger.security(f"{config.vpn_type.display_name} config written with restrictive permissions")

        auth_file: Optional[Path] = None
        if isinstance(config, OpenVpnConfig):
            if config.has_credentials():
                auth_file = write_private_file(
                    staging / AUTH_FILE_NAME, f"{config.username}\n{config.password}\n"
                )
                logger.security("OpenVPN auth file created with restrictive permissions")
            elif config.requires_auth:
                logger.warning("Config uses auth-user-pass but no credentials were supplied")
        return config_file, auth_file

    def stop_and_remove(self) -> None:
        """Stop and remove the tunnel container. Never raises.

        Always also sweeps by name, since a killed process leaves a running
        container behind without a retained handle.
        """
        docker_settings = self.settings.docker
        container_id = self._container_id
        if container_id is not None:
            try:
                logger.info(f"Stopping container: {container_id[:12]}")
                self.client.stop(container_id, timeout=docker_settings.stop_timeout)
            except EngineError as e:
                logger.warning(f"Error stopping container: {e}")
            try:
                logger.info(f"Removing container: {container_id[:12]}")
                self.client.remove(container_id, force=True)
            except EngineError as e:
                logger.warning(f"Error removing container: {e}")
            self._container_id = None

        try:
            orphans = self.client.list_by_name(docker_settings.container_name)
        except EngineError as e:
            logger.debug(f"Error listing containers: {e}")
            return

        for orphan_id in orphans:
            try:
                self.client.stop(orphan_id, timeout=docker_settings.orphan_stop_timeout)
                self.client.remove(orphan_id, force=True)
                logger.info(f"Cleaned up orphaned container: {orphan_id[:12]}")
            except EngineError as e:
                logger.debug(f"Could not clean up container: {e}")

    def is_running(self) -> bool:
        """Point-in-time liveness of the tracked container."""
        container_id = self._container_id
        if container_id is None:
            return False
        try:
            return self.client.is_running(container_id)
        except EngineError as e:
            logger.debug(f"Error checking container status: {e}")
            return False

    def get_logs(self) -> str:
        """Container logs, the only diagnostics the tunnel process leaves."""
        container_id = self._container_id
        if container_id is None:
            return "No container running"
        try:
            return self.client.fetch_logs(container_id, timeout=self.settings.timing.log_wait_seconds)
        except EngineError as e:
            return f"Error reading logs: {e}"

    def cleanup(self, remove_container: bool = True) -> None:
        """Tear down the container and securely delete staged secrets.

        Args:
            remove_container: False leaves the container for docker logs
        """
        logger.info("Cleaning up Docker resources...")
        if remove_container:
            self.stop_and_remove()

        if self._staging_dir is not None:
            secure_delete_directory(self._staging_dir)
            self._staging_dir = None

        logger.info("Docker cleanup complete")


def remove_stale_staging_dirs(keep: Optional[Path] = None) -> int:
    """Securely delete staging directories left behind by earlier runs.

    Only directories owned by the current user are touched.

    Args:
        keep: Staging directory still in use by this process

    Returns:
        Number of directories removed
    """
    root = HostPaths.staging_root()
    candidates = list(root.glob(f"{HostPaths.STAGING_PREFIX}*"))
    candidates += root.glob(f"{HostPaths.BUILD_CONTEXT_PREFIX}*")

    removed = 0
    for candidate in candidates:
        if not candidate.is_dir() or candidate.is_symlink() or candidate == keep:
            continue
        try:
            owner = candidate.stat().st_uid
        except OSError:
            continue
        if hasattr(os, "getuid") and owner != os.getuid():
            continue

        if candidate.name.startswith(HostPaths.BUILD_CONTEXT_PREFIX):
            shutil.rmtree(candidate, ignore_errors=True)
        else:
            secure_delete_directory(candidate)
        logger.debug(f"Removed stale staging directory: {candidate.name}")
        removed += 1
    return removed

# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Thin synchronous wrapper around the Docker SDK.

Every engine failure surfaces as EngineError (or one of its subclasses).
Nothing here retries; retry policy belongs to the caller.
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import docker
from docker.models.containers import Container

from wireup.docker.spec import ContainerSpec
from wireup.utils.exceptions import (
    ContainerNameConflict,
    EngineError,
    EngineUnavailableError,
    ResourceNotFound,
)
from wireup.utils.logging import get_logger

logger = get_logger(__name__)

HTTP_CONFLICT = 409


@contextmanager
def _engine_call(action: str) -> Iterator[None]:
    """Translate docker SDK errors into wireup exceptions."""
    try:
        yield
    except docker.errors.NotFound as e:
        raise ResourceNotFound(f"{action}: {e.explanation or e}") from e
    except docker.errors.APIError as e:
        if e.status_code == HTTP_CONFLICT:
            raise ContainerNameConflict(f"{action}: {e.explanation or e}") from e
        raise EngineError(f"{action}: {e.explanation or e}") from e
    except docker.errors.DockerException as e:
        raise EngineError(f"{action}: {e}") from e
    except OSError as e:
        # Socket gone mid-call (daemon restarted)
        raise EngineError(f"{action}: {e}") from e


class DockerClient:
    """Primitive operations against the Docker engine."""

    def __init__(self, client: Optional[docker.DockerClient] = None):
        """Connect to the engine.

        Args:
            client: Pre-built SDK client (defaults to docker.from_env())

        Raises:
            EngineUnavailableError: The engine is not reachable.
        """
        try:
            self.client = client if client is not None else docker.from_env()
        except docker.errors.DockerException as e:
            raise EngineUnavailableError(
                f"Cannot connect to Docker daemon. Is Docker running? ({e})"
            ) from e

        if not self.ping():
            raise EngineUnavailableError("Cannot connect to Docker daemon. Is Docker running?")
        logger.debug("Docker daemon is accessible")

    def ping(self) -> bool:
        """Check the engine itself is alive."""
        try:
            return bool(self.client.ping())
        except (docker.errors.DockerException, OSError) as e:
            logger.debug(f"Docker ping failed: {e}")
            return False

    # ========== Images ==========

    def build_image(self, path: Path, tag: str, dockerfile: str = "Dockerfile") -> str:
        """Build an image from a build context directory.

        Slow (about a minute on first build); blocks until done.

        Returns:
            The built image id.
        """
        with _engine_call(f"Building image {tag}"):
            image, build_log = self.client.images.build(
                path=str(path),
                dockerfile=dockerfile,
                tag=tag,
                pull=False,
                rm=True,
            )
            for chunk in build_log:
                line = chunk.get("stream", "").strip() if isinstance(chunk, dict) else ""
                if line:
                    logger.debug(f"build: {line}")
            return image.id

    def image_exists(self, tag: str) -> bool:
        """Check if an image tag is present locally."""
        try:
            with _engine_call(f"Inspecting image {tag}"):
                self.client.images.get(tag)
            return True
        except ResourceNotFound:
            return False

    def remove_image(self, tag: str, force: bool = True) -> bool:
        """Remove an image tag.

        Returns:
            True if removed, False if there was nothing to remove.
        """
        try:
            with _engine_call(f"Removing image {tag}"):
                self.client.images.remove(image=tag, force=force)
            return True
        except ResourceNotFound:
            return False

    # ========== Containers ==========

    def _get(self, container_id: str) -> Container:
        with _engine_call(f"Looking up container {container_id[:12]}"):
            return self.client.containers.get(container_id)

    def create_container(self, spec: ContainerSpec) -> str:
        """Create (but do not start) a container.

        Raises:
            ContainerNameConflict: A container with spec.name already exists.
        """
        with _engine_call(f"Creating container {spec.name}"):
            container = self.client.containers.create(**spec.to_create_kwargs())
            return container.id

    def start(self, container_id: str) -> None:
        container = self._get(container_id)
        with _engine_call(f"Starting container {container_id[:12]}"):
            container.start()

    def stop(self, container_id: str, timeout: int = 10) -> None:
        container = self._get(container_id)
        with _engine_call(f"Stopping container {container_id[:12]}"):
            container.stop(timeout=timeout)

    def remove(self, container_id: str, force: bool = False) -> None:
        container = self._get(container_id)
        with _engine_call(f"Removing container {container_id[:12]}"):
            container.remove(force=force)

    def list_by_name(self, name: str, all_containers: bool = True) -> List[str]:
        """Find container ids by exact name, including stopped ones.

        Docker's name filter is a substring/regex match, so results are
        narrowed to the exact name here.
        """
        with _engine_call(f"Listing containers named {name}"):
            containers = self.client.containers.list(all=all_containers, filters={"name": name})
        return [c.id for c in containers if c.name.lstrip("/") == name]

    def is_running(self, container_id: str) -> bool:
        """Point-in-time running check.

        Raises:
            ResourceNotFound: The id no longer resolves.
        """
        container = self._get(container_id)
        return container.status == "running"

    def fetch_logs(self, container_id: str, timeout: float = 5.0) -> str:
        """Collect stdout+stderr of a container.

        Waits at most `timeout` seconds and returns whatever arrived by then.
        """
        container = self._get(container_id)
        chunks: List[bytes] = []
        errors: List[BaseException] = []

        def _collect() -> None:
            try:
                for chunk in container.logs(stdout=True, stderr=True, stream=True, follow=False):
                    chunks.append(chunk)
            except (docker.errors.DockerException, OSError) as e:
                errors.append(e)

        reader = threading.Thread(target=_collect, daemon=True, name="wireup-logs")
        reader.start()
        reader.join(timeout=timeout)
        if reader.is_alive():
            logger.debug(f"Log fetch still running after {timeout}s, returning partial output")

        if errors and not chunks:
            raise EngineError(f"Reading logs of {container_id[:12]}: {errors[0]}")
        return b"".join(list(chunks)).decode("utf-8", errors="replace")

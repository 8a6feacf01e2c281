"""Docker daemon access through the docker SDK.

DockerEngine is used for daemon reachability checks and for image cleanup.
The build itself goes through the ``docker`` CLI (see
:mod:`autodeploy.docker.invoker`) so its output can be streamed exactly as a
user would see it.
"""

from __future__ import annotations

import logging

import docker
from docker.errors import DockerException, ImageNotFound

logger = logging.getLogger(__name__)


class DockerEngine:
    """Thin wrapper over a lazily created ``docker.DockerClient``.

    The client is created on first use so constructing an engine never
    touches the daemon.

    Args:
        timeout: Default API timeout in seconds for daemon calls.
    """

    def __init__(self, timeout: float = 8.0) -> None:
        self._timeout = timeout
        self._client: docker.DockerClient | None = None

    def get_client(self) -> docker.DockerClient:
        """Return the underlying Docker client, connecting on first use.

        Raises:
            DockerException: If the Docker environment cannot be configured.
        """
        if self._client is None:
            self._client = docker.from_env(timeout=int(max(1, self._timeout)))
        return self._client

    def ping(self) -> tuple[bool, str | None]:
        """Check that the Docker daemon answers.

        Returns:
            Tuple of ``(reachable, error_message)``.
        """
        try:
            self.get_client().ping()
        except DockerException as exc:
            logger.info("Docker daemon not reachable: %s", exc)
            return False, f"Docker daemon is not running: {exc}"
        except Exception as exc:  # requests/urllib3 timeouts surface as plain errors
            logger.info("Docker daemon ping failed: %s", exc)
            return False, f"Docker daemon did not respond: {exc}"
        logger.debug("Docker daemon reachable")
        return True, None

    def image_exists(self, image_name: str) -> bool:
        """Return True if *image_name* exists locally."""
        try:
            self.get_client().images.get(image_name)
        except ImageNotFound:
            return False
        return True

    def remove_image(self, image_name: str) -> bool:
        """Remove a local image.  Errors are logged, never raised.

        Args:
            image_name: Full image name with tag.

        Returns:
            True if the image was removed.
        """
        try:
            self.get_client().images.remove(image=image_name, force=True)
        except ImageNotFound:
            logger.debug("Image '%s' already gone", image_name)
            return False
        except DockerException as exc:
            logger.warning("Failed to remove image '%s': %s", image_name, exc)
            return False
        logger.info("Removed image '%s'", image_name)
        return True

    def close(self) -> None:
        """Close the client connection if one was opened."""
        if self._client is not None:
            try:
                self._client.close()
            except DockerException as exc:
                logger.debug("Error closing Docker client: %s", exc)
            self._client = None

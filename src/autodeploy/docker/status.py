"""Build tool availability checks.

Two independent probes, each with its own short timeout, run before any
build attempt:

1. ``docker --version``: the CLI is installed and on ``PATH``.
2. A daemon ping through the docker SDK: the daemon is reachable.

If either fails, no build is attempted.  ``test_build`` is an optional,
heavier check that builds a throwaway image and always cleans up after
itself.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
import tempfile
from pathlib import Path

from autodeploy.docker.engine import DockerEngine
from autodeploy.models.execution import DockerStatus, ProbeResult

logger = logging.getLogger(__name__)

VERSION_PROBE_TIMEOUT = 5.0
DAEMON_PROBE_TIMEOUT = 8.0
TEST_BUILD_TIMEOUT = 30.0
TEST_IMAGE_TAG = "autodeploy-probe:latest"

_TEST_DOCKERFILE = """FROM alpine:latest
RUN echo "Docker build test successful"
CMD ["echo", "Hello from Docker!"]
"""

INSTALLATION_INSTRUCTIONS: dict[str, list[str]] = {
    "windows": [
        "Download Docker Desktop from https://www.docker.com/products/docker-desktop/",
        "Run the installer and restart if prompted",
        "Start Docker Desktop and wait for the whale icon in the system tray",
        "Verify with: docker --version",
    ],
    "macos": [
        "Download Docker Desktop from https://www.docker.com/products/docker-desktop/",
        "Drag Docker.app to Applications and start it",
        "Verify with: docker --version",
    ],
    "linux": [
        "Install Docker Engine: https://docs.docker.com/engine/install/",
        "Start the service: sudo systemctl start docker",
        "Add your user to the docker group: sudo usermod -aG docker $USER",
        "Log out and back in, then verify with: docker --version",
    ],
}


def installation_instructions(platform: str | None = None) -> list[str]:
    """Return install steps for *platform* (defaults to the current one)."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return INSTALLATION_INSTRUCTIONS["windows"]
    if platform == "darwin" or platform == "macos":
        return INSTALLATION_INSTRUCTIONS["macos"]
    return INSTALLATION_INSTRUCTIONS["linux"]


async def run_probe(command: list[str], timeout: float) -> ProbeResult:
    """Run a short command, killing it if it exceeds *timeout* seconds.

    Never raises for a missing binary or a failing command; the failure is
    reported in the returned ProbeResult.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        return ProbeResult(success=False, error=str(exc))

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
        return ProbeResult(
            success=False,
            error=f"Command timed out after {timeout:g}s",
            timed_out=True,
        )

    return ProbeResult(
        success=process.returncode == 0,
        output=stdout.decode("utf-8", errors="replace").strip(),
        error=stderr.decode("utf-8", errors="replace").strip(),
    )


class DockerStatusChecker:
    """Check that the ``docker`` CLI is installed and its daemon reachable.

    Args:
        engine: DockerEngine used for the daemon probe and image cleanup.
        binary: Build tool executable.
        version_timeout: Timeout of the installation probe, in seconds.
        daemon_timeout: Timeout of the daemon probe, in seconds.
    """

    def __init__(
        self,
        engine: DockerEngine | None = None,
        binary: str = "docker",
        version_timeout: float = VERSION_PROBE_TIMEOUT,
        daemon_timeout: float = DAEMON_PROBE_TIMEOUT,
    ) -> None:
        self._engine = engine or DockerEngine(timeout=daemon_timeout)
        self._binary = binary
        self._version_timeout = version_timeout
        self._daemon_timeout = daemon_timeout

    async def check_status(self) -> DockerStatus:
        """Run both probes.

        Returns:
            DockerStatus; ``can_build`` is True only if both probes passed.
        """
        version = await run_probe([self._binary, "--version"], self._version_timeout)
        if not version.success:
            logger.info("Docker CLI not available: %s", version.error)
            return DockerStatus(
                is_installed=False,
                is_running=False,
                can_build=False,
                error=version.error or "Docker is not installed or not in PATH",
            )
        logger.info("Docker CLI installed: %s", version.output)

        try:
            reachable, error = await asyncio.wait_for(
                asyncio.to_thread(self._engine.ping), timeout=self._daemon_timeout
            )
        except asyncio.TimeoutError:
            reachable, error = False, f"Docker daemon did not respond within {self._daemon_timeout:g}s"

        if not reachable:
            return DockerStatus(
                is_installed=True,
                is_running=False,
                can_build=False,
                version=version.output,
                error=error or "Docker daemon is not running. Please start Docker.",
            )

        return DockerStatus(
            is_installed=True,
            is_running=True,
            can_build=True,
            version=version.output,
        )

    async def test_build(self, timeout: float = TEST_BUILD_TIMEOUT) -> ProbeResult:
        """Build a throwaway image to prove builds work end to end.

        The temporary directory is removed on every path, and the test image
        whenever the build left one behind; cleanup failures are logged and
        never raised.
        """
        test_dir = Path(tempfile.mkdtemp(prefix="autodeploy-probe-"))
        try:
            dockerfile = test_dir / "Dockerfile"
            dockerfile.write_text(_TEST_DOCKERFILE, encoding="utf-8")
            return await run_probe(
                [self._binary, "build", "-f", str(dockerfile), "-t", TEST_IMAGE_TAG, str(test_dir)],
                timeout,
            )
        finally:
            try:
                shutil.rmtree(test_dir)
            except OSError as exc:
                logger.warning("Failed to remove probe directory %s: %s", test_dir, exc)
            try:
                if await asyncio.to_thread(self._engine.image_exists, TEST_IMAGE_TAG):
                    await asyncio.to_thread(self._engine.remove_image, TEST_IMAGE_TAG)
            except Exception as exc:
                logger.warning("Failed to remove probe image %s: %s", TEST_IMAGE_TAG, exc)

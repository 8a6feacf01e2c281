"""Tests for DockerStatusChecker probes, the test build, and install hints."""

from __future__ import annotations

import asyncio
import os
import sys
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from autodeploy.docker.status import (
    INSTALLATION_INSTRUCTIONS,
    TEST_IMAGE_TAG,
    DockerStatusChecker,
    installation_instructions,
    run_probe,
)

skip_no_sh = pytest.mark.skipif(
    sys.platform.startswith("win") or not os.path.exists("/bin/sh"),
    reason="needs a POSIX shell",
)


class FakeEngine:
    """Stands in for DockerEngine; records removed images."""

    def __init__(
        self,
        reachable: bool = True,
        error: str | None = None,
        delay: float = 0.0,
        images: set[str] | None = None,
    ) -> None:
        self.reachable = reachable
        self.error = error
        self.delay = delay
        self.images = set(images or ())
        self.removed: list[str] = []

    def ping(self) -> tuple[bool, str | None]:
        if self.delay:
            time.sleep(self.delay)
        return self.reachable, self.error

    def image_exists(self, image_name: str) -> bool:
        return image_name in self.images

    def remove_image(self, image_name: str) -> bool:
        self.images.discard(image_name)
        self.removed.append(image_name)
        return True


def _fake_docker(tmp_path: Path, body: str = 'echo "Docker version 27.0.1, build abc"\n') -> str:
    script = tmp_path / "docker"
    script.write_text("#!/bin/sh\n" + body)
    script.chmod(0o755)
    return str(script)


def test_run_probe_missing_binary(tmp_path: Path) -> None:
    result = asyncio.run(run_probe([str(tmp_path / "missing"), "--version"], timeout=1))

    assert not result.success
    assert result.error


@skip_no_sh
def test_run_probe_times_out(tmp_path: Path) -> None:
    binary = _fake_docker(tmp_path, "exec sleep 30\n")

    result = asyncio.run(run_probe([binary, "--version"], timeout=0.3))

    assert not result.success
    assert result.timed_out


def test_missing_cli_is_not_installed(tmp_path: Path) -> None:
    engine = FakeEngine()
    checker = DockerStatusChecker(engine, binary=str(tmp_path / "missing"))

    status = asyncio.run(checker.check_status())

    assert not status.is_installed
    assert not status.can_build
    assert status.error


@skip_no_sh
def test_installed_and_running(tmp_path: Path) -> None:
    checker = DockerStatusChecker(FakeEngine(), binary=_fake_docker(tmp_path))

    status = asyncio.run(checker.check_status())

    assert status.is_installed and status.is_running and status.can_build
    assert status.version == "Docker version 27.0.1, build abc"
    assert status.error is None


@skip_no_sh
def test_daemon_unreachable(tmp_path: Path) -> None:
    engine = FakeEngine(reachable=False, error="Cannot connect to the Docker daemon")
    checker = DockerStatusChecker(engine, binary=_fake_docker(tmp_path))

    status = asyncio.run(checker.check_status())

    assert status.is_installed
    assert not status.is_running
    assert not status.can_build
    assert status.error == "Cannot connect to the Docker daemon"


@skip_no_sh
def test_daemon_probe_timeout(tmp_path: Path) -> None:
    checker = DockerStatusChecker(
        FakeEngine(delay=0.5), binary=_fake_docker(tmp_path), daemon_timeout=0.1
    )

    status = asyncio.run(checker.check_status())

    assert not status.can_build
    assert "did not respond" in status.error


@skip_no_sh
def test_test_build_cleans_up(tmp_path: Path) -> None:
    # Prints the build context argument (the last one).
    binary = _fake_docker(tmp_path, 'for last; do :; done\necho "$last"\n')
    engine = FakeEngine(images={TEST_IMAGE_TAG})

    result = asyncio.run(DockerStatusChecker(engine, binary=binary).test_build(timeout=5))

    assert result.success
    assert not Path(result.output).exists()
    assert engine.removed == [TEST_IMAGE_TAG]
    assert engine.images == set()


@skip_no_sh
def test_test_build_failure_still_cleans_up(tmp_path: Path) -> None:
    binary = _fake_docker(tmp_path, 'echo "no space left on device" >&2\nexit 1\n')
    engine = FakeEngine()

    result = asyncio.run(DockerStatusChecker(engine, binary=binary).test_build(timeout=5))

    assert not result.success
    assert "no space left" in result.error
    # The failed build left no image, so there is nothing to remove.
    assert engine.removed == []


@skip_no_sh
def test_test_build_cleanup_survives_engine_errors(tmp_path: Path) -> None:
    binary = _fake_docker(tmp_path, "exit 0\n")
    engine = FakeEngine()
    engine.image_exists = MagicMock(side_effect=RuntimeError("daemon went away"))

    result = asyncio.run(DockerStatusChecker(engine, binary=binary).test_build(timeout=5))

    assert result.success
    assert engine.removed == []


@pytest.mark.parametrize(
    ("platform", "key"),
    [("win32", "windows"), ("darwin", "macos"), ("linux", "linux"), ("freebsd13", "linux")],
)
def test_installation_instructions(platform: str, key: str) -> None:
    assert installation_instructions(platform) == INSTALLATION_INSTRUCTIONS[key]

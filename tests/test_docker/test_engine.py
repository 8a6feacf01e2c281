"""Tests for DockerEngine.

Unit tests patch ``docker.from_env``; the live tests are skipped if the
Docker daemon is not running, so CI environments without Docker will not
fail.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from docker.errors import DockerException, ImageNotFound

from autodeploy.docker import engine as engine_module
from autodeploy.docker.engine import DockerEngine


def docker_available() -> bool:
    """Check if the Docker daemon is running and accessible."""
    try:
        import docker

        client = docker.from_env()
        client.ping()
        return True
    except Exception:
        return False


skip_no_docker = pytest.mark.skipif(
    not docker_available(),
    reason="Docker daemon not available",
)


@pytest.fixture
def fake_client(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    client = MagicMock()
    monkeypatch.setattr(engine_module.docker, "from_env", MagicMock(return_value=client))
    return client


def test_client_created_lazily(fake_client: MagicMock) -> None:
    engine = DockerEngine(timeout=3)

    assert engine_module.docker.from_env.call_count == 0
    assert engine.get_client() is fake_client
    assert engine.get_client() is fake_client
    engine_module.docker.from_env.assert_called_once_with(timeout=3)


def test_ping_reports_daemon_errors(fake_client: MagicMock) -> None:
    fake_client.ping.side_effect = DockerException("connection refused")

    reachable, error = DockerEngine().ping()

    assert not reachable
    assert "connection refused" in error


def test_ping_reports_transport_errors(fake_client: MagicMock) -> None:
    fake_client.ping.side_effect = TimeoutError("read timed out")

    reachable, error = DockerEngine().ping()

    assert not reachable
    assert "did not respond" in error


def test_image_exists(fake_client: MagicMock) -> None:
    engine = DockerEngine()

    assert engine.image_exists("x:latest") is True
    fake_client.images.get.assert_called_with("x:latest")

    fake_client.images.get.side_effect = ImageNotFound("gone")
    assert engine.image_exists("x:latest") is False


def test_remove_image_never_raises(fake_client: MagicMock) -> None:
    engine = DockerEngine()

    fake_client.images.remove.side_effect = ImageNotFound("gone")
    assert engine.remove_image("x:latest") is False

    fake_client.images.remove.side_effect = DockerException("conflict")
    assert engine.remove_image("x:latest") is False

    fake_client.images.remove.side_effect = None
    assert engine.remove_image("x:latest") is True
    fake_client.images.remove.assert_called_with(image="x:latest", force=True)


def test_close_resets_client(fake_client: MagicMock) -> None:
    engine = DockerEngine()
    engine.get_client()

    engine.close()

    fake_client.close.assert_called_once()
    engine.close()


@skip_no_docker
class TestLiveDockerEngine:
    """Tests against a real Docker daemon."""

    def test_engine_pings(self) -> None:
        engine = DockerEngine()
        try:
            assert engine.ping() == (True, None)
        finally:
            engine.close()

    def test_missing_image_does_not_exist(self) -> None:
        engine = DockerEngine()
        try:
            assert not engine.image_exists("autodeploy-never-built:does-not-exist")
        finally:
            engine.close()

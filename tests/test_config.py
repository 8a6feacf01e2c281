"""Tests for Settings loading from YAML and the environment."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from autodeploy.config import Settings


def _write(tmp_path: Path, data: dict | None) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data) if data is not None else "")
    return path


def test_from_yaml(tmp_path: Path, minimal_config_dict: dict) -> None:
    settings = Settings.from_yaml(_write(tmp_path, minimal_config_dict))

    assert settings.build.max_retries == 4
    assert settings.build.lint_before_build is False
    assert settings.docker.build_timeout == 120
    assert settings.docker.extra_build_args == ["--progress=plain"]
    assert settings.docker.daemon_probe_timeout == 8.0
    assert settings.llm.openai.api_key == "test-openai-key"


def test_empty_yaml_gives_defaults(tmp_path: Path) -> None:
    settings = Settings.from_yaml(_write(tmp_path, None))

    assert settings.build.max_retries == 3
    assert settings.docker.binary == "docker"
    assert settings.llm.openai is None


def test_env_var_substitution(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MY_OPENAI_KEY", "sk-from-env")
    path = _write(tmp_path, {"llm": {"openai": {"api_key": "$MY_OPENAI_KEY"}}})

    settings = Settings.from_yaml(path)

    assert settings.llm.openai.api_key == "sk-from-env"


def test_missing_env_var_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
    path = _write(tmp_path, {"llm": {"openai": {"api_key": "$NOT_SET_ANYWHERE"}}})

    with pytest.raises(ValueError, match="NOT_SET_ANYWHERE"):
        Settings.from_yaml(path)


def test_max_retries_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        Settings.from_yaml(_write(tmp_path, {"build": {"max_retries": 0}}))


def test_from_env_prefers_openai(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")

    settings = Settings.from_env()

    assert settings.llm.provider == "openai"
    assert settings.llm.openai.api_key == "sk-openai"
    assert settings.llm.gemini.api_key == "g-key"


def test_from_env_gemini_only(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")

    settings = Settings.from_env()

    assert settings.llm.provider == "gemini"
    assert settings.llm.openai is None


def test_from_env_without_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    settings = Settings.from_env()

    assert settings.llm.openai is None and settings.llm.gemini is None


def test_embedded_env_reference(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUILD_ROOT", "/srv/builds")
    path = _write(tmp_path, {"log_dir": "${BUILD_ROOT}/logs", "output_dir": "./out$"})

    settings = Settings.from_yaml(path)

    assert settings.log_dir == "/srv/builds/logs"
    assert settings.output_dir == "./out$"

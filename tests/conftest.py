"""Shared pytest fixtures for the autodeploy test suite."""

from pathlib import Path

import pytest

from autodeploy.models.build import FileKind, ProjectFile

PYTHON_DOCKERFILE = """FROM python:3.11-slim
WORKDIR /app
COPY requirements.txt .
RUN pip install --no-cache-dir -r requirements.txt
COPY . .
CMD ["python", "app.py"]
"""

GO_ON_PYTHON_DOCKERFILE = """FROM golang:1.21
WORKDIR /app
COPY . .
RUN go build -o app main.py
CMD ["./app"]
"""


@pytest.fixture
def python_dockerfile() -> str:
    """A conventional Dockerfile for a Flask-style Python project."""
    return PYTHON_DOCKERFILE


@pytest.fixture
def go_on_python_dockerfile() -> str:
    """A Go Dockerfile wrongly drafted for a Python project."""
    return GO_ON_PYTHON_DOCKERFILE


@pytest.fixture
def python_project_files() -> list[ProjectFile]:
    """Snapshot of a small Python project without requirements.txt."""
    return [
        ProjectFile(path="app.py", content="print('hello')\n"),
        ProjectFile(path="static/logo.png", content=b"\x89PNG\r\n\x1a\n"),
        ProjectFile(path="templates/index.html", content="<h1>hi</h1>\n"),
        ProjectFile(path="uploads", kind=FileKind.DIRECTORY),
    ]


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a project directory on disk with a Dockerfile."""
    root = tmp_path / "My_Project"
    root.mkdir()
    (root / "app.py").write_text("print('hello')\n")
    (root / "requirements.txt").write_text("flask==2.3.3\n")
    (root / "Dockerfile").write_text(PYTHON_DOCKERFILE)
    (root / "data").mkdir()
    return root


@pytest.fixture
def minimal_config_dict() -> dict:
    """Return a minimal configuration dictionary for testing."""
    return {
        "docker": {
            "binary": "docker",
            "build_timeout": 120,
            "extra_build_args": ["--progress=plain"],
        },
        "build": {
            "max_retries": 4,
            "lint_before_build": False,
        },
        "llm": {
            "provider": "openai",
            "openai": {
                "api_key": "test-openai-key",
                "model": "gpt-4o-mini",
                "temperature": 0.1,
            },
            "gemini": {
                "api_key": "test-gemini-key",
                "model": "gemini-2.5-pro",
                "temperature": 0.0,
            },
        },
        "log_dir": "./logs",
        "output_dir": "./output",
    }

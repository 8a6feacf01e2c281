"""Tests for static Dockerfile checks."""

import pytest

from autodeploy.models.build import ErrorCategory
from autodeploy.pipeline.definition_check import (
    DefinitionCheckError,
    check_definition,
    validate_definition,
)


def test_clean_definition_has_no_issues(python_dockerfile: str) -> None:
    assert validate_definition(python_dockerfile) == []
    check_definition(python_dockerfile)


def test_go_image_on_python_project(go_on_python_dockerfile: str) -> None:
    issues = validate_definition(go_on_python_dockerfile)

    assert [(i.category, i.line_number) for i in issues] == [
        (ErrorCategory.LANGUAGE_MISMATCH, 1),
        (ErrorCategory.LANGUAGE_MISMATCH, 4),
    ]
    assert issues[0].message == "Using Go base image for Python project"
    assert issues[1].message == "Trying to build Python file with Go compiler"


def test_go_image_without_python_is_fine() -> None:
    definition = "FROM golang:1.21\nCOPY . .\nRUN go build -o app ./cmd/app\n"

    assert validate_definition(definition) == []


def test_pip_install_without_copy() -> None:
    definition = "FROM python:3.11-slim\nRUN pip install -r requirements.txt\n"

    issues = validate_definition(definition)

    assert len(issues) == 1
    assert issues[0].category == ErrorCategory.MISSING_FILE
    assert issues[0].source_file == "requirements.txt"
    assert issues[0].line_number == 2


def test_generated_requirements_is_not_flagged() -> None:
    definition = (
        "FROM python:3.11-slim\n"
        'RUN echo "flask==2.3.3" > requirements.txt && pip install -r requirements.txt\n'
    )

    assert validate_definition(definition) == []


def test_comments_are_ignored() -> None:
    definition = "# RUN go build main.py\nFROM python:3.11-slim\n"

    assert validate_definition(definition) == []


def test_check_definition_raises_with_issues(go_on_python_dockerfile: str) -> None:
    with pytest.raises(DefinitionCheckError) as exc_info:
        check_definition(go_on_python_dockerfile)

    error = exc_info.value
    assert len(error.issues) == 2
    assert "2 issues" in str(error)
    assert "line 4" in str(error)

"""Tests for Dockerfile extraction from LLM responses."""

import pytest

from autodeploy.llm.response_parser import (
    contains_from_instruction,
    extract_dockerfile,
)

# ---------------------------------------------------------------------------
# extract_dockerfile: fenced blocks
# ---------------------------------------------------------------------------


class TestFencedBlocks:
    """Extraction from ```dockerfile ... ``` and untagged blocks."""

    def test_dockerfile_fence(self) -> None:
        response = (
            "Here is the corrected Dockerfile:\n"
            "```dockerfile\n"
            "FROM python:3.11-slim\n"
            "WORKDIR /app\n"
            "```\n"
            "This uses a slim base image."
        )
        assert extract_dockerfile(response) == "FROM python:3.11-slim\nWORKDIR /app\n"

    def test_capitalized_fence(self) -> None:
        response = "```Dockerfile\nFROM node:20\nRUN npm ci\n```"
        assert extract_dockerfile(response) == "FROM node:20\nRUN npm ci\n"

    def test_untagged_fence(self) -> None:
        response = "```\nFROM alpine:3.19\n```"
        assert extract_dockerfile(response) == "FROM alpine:3.19\n"

    def test_first_block_with_from_wins(self) -> None:
        response = (
            "```bash\ndocker build -t app .\n```\n"
            "```dockerfile\nFROM golang:1.22\n```\n"
            "```dockerfile\nFROM python:3.11-slim\n```"
        )
        assert extract_dockerfile(response) == "FROM golang:1.22\n"

    def test_arg_preamble_kept(self) -> None:
        response = "```dockerfile\nARG VERSION=3.11\nFROM python:${VERSION}-slim\n```"
        assert extract_dockerfile(response) == "ARG VERSION=3.11\nFROM python:${VERSION}-slim\n"


# ---------------------------------------------------------------------------
# extract_dockerfile: bare text and rejects
# ---------------------------------------------------------------------------


class TestBareText:
    """Responses without a usable fence."""

    def test_prose_before_from_dropped(self) -> None:
        response = "Sure! Use this:\nFROM python:3.11-slim\nCMD [\"python\", \"app.py\"]"
        assert extract_dockerfile(response) == 'FROM python:3.11-slim\nCMD ["python", "app.py"]\n'

    def test_comment_preamble_kept(self) -> None:
        response = "# syntax=docker/dockerfile:1\nFROM alpine\n"
        assert extract_dockerfile(response) == "# syntax=docker/dockerfile:1\nFROM alpine\n"

    @pytest.mark.parametrize(
        "response",
        ["", "   ", "I cannot help with that.", "```bash\necho hi\n```"],
    )
    def test_no_from_returns_none(self, response: str) -> None:
        assert extract_dockerfile(response) is None


class TestContainsFrom:
    def test_detects_indented_lowercase_from(self) -> None:
        assert contains_from_instruction("  from alpine")

    def test_ignores_from_in_prose(self) -> None:
        assert not contains_from_instruction("Start FROM scratch is a bad idea")

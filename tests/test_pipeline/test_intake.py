"""Tests for loading a project snapshot from disk."""

import os
from pathlib import Path

import pytest

from autodeploy.models.build import FileKind
from autodeploy.pipeline.intake import file_manifest, load_project


def test_load_project_reads_files_sorted(project_dir: Path) -> None:
    files = load_project(project_dir)

    assert [f.path for f in files] == ["app.py", "data", "requirements.txt"]
    assert files[0].content == "print('hello')\n"
    assert files[1].kind == FileKind.DIRECTORY


def test_load_project_can_keep_dockerfile(project_dir: Path) -> None:
    files = load_project(project_dir, skip_dockerfile=False)

    assert "Dockerfile" in [f.path for f in files]


def test_load_project_skips_ignored_dirs(project_dir: Path) -> None:
    (project_dir / ".git").mkdir()
    (project_dir / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (project_dir / "node_modules" / "left-pad").mkdir(parents=True)
    (project_dir / "node_modules" / "left-pad" / "index.js").write_text("module.exports = 1\n")

    paths = [f.path for f in load_project(project_dir)]

    assert not any(p.startswith((".git", "node_modules")) for p in paths)


def test_load_project_keeps_binary_as_bytes(project_dir: Path) -> None:
    (project_dir / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\xff")

    files = {f.path: f for f in load_project(project_dir)}

    assert files["logo.png"].content == b"\x89PNG\r\n\x1a\n\xff"


def test_load_project_skips_large_files(project_dir: Path) -> None:
    (project_dir / "big.bin").write_bytes(b"0" * 64)

    paths = [f.path for f in load_project(project_dir, max_file_bytes=32)]

    assert "big.bin" not in paths
    assert "app.py" in paths


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
def test_load_project_skips_symlinks(project_dir: Path, tmp_path: Path) -> None:
    outside = tmp_path / "secret.txt"
    outside.write_text("secret\n")
    (project_dir / "link.txt").symlink_to(outside)

    paths = [f.path for f in load_project(project_dir)]

    assert "link.txt" not in paths


def test_load_project_rejects_non_directory(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x")

    with pytest.raises(NotADirectoryError):
        load_project(target)


def test_file_manifest_lists_only_files(python_project_files) -> None:
    assert file_manifest(python_project_files) == [
        "app.py",
        "static/logo.png",
        "templates/index.html",
    ]

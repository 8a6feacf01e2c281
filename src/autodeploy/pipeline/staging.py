"""Build-context staging for one build attempt.

Every call to :func:`stage` allocates a fresh, uniquely named temporary
directory, so no attempt ever sees files written by another attempt or
session.  Project files are written at their relative paths and the
Dockerfile (stripped of any markdown code fence an LLM wrapped it in) is
written to :data:`DEFINITION_FILENAME`.

Paths that would land outside the staging root raise :class:`StagingError`
instead of being silently redirected.
"""

import os
import re
import shutil
import tempfile
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from loguru import logger

from autodeploy.models.build import FileKind, ProjectFile

DEFINITION_FILENAME = "Dockerfile"
DEFAULT_PREFIX = "autodeploy-"

_OPENING_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*[^\S\n]*\n?")
_CLOSING_FENCE_RE = re.compile(r"\n?```\s*$")
_LEADING_BACKTICKS_RE = re.compile(r"^`+\s*")
_TAG_INVALID_RE = re.compile(r"[^a-z0-9._-]+")
_GITHUB_RE = re.compile(r"github\.com/([^/]+)/([^/#?]+)", re.IGNORECASE)


class StagingError(Exception):
    """Raised when the build context cannot be materialized.

    Attributes:
        path: The offending relative path, if the failure is path-specific.
    """

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


def sanitize_definition(raw: str) -> str:
    """Strip surrounding code-fence markup from a Dockerfile draft.

    Handles ````` ```dockerfile ... ``` ````` and bare ````` ``` ... ``` `````
    fences, plus stray backticks left at the start of the first line.

    Args:
        raw: Draft text, possibly wrapped in a markdown fence.

    Returns:
        The bare Dockerfile text, ending in a single newline.
    """
    content = raw.strip()
    if content.startswith("```"):
        content = _OPENING_FENCE_RE.sub("", content, count=1)
        content = _CLOSING_FENCE_RE.sub("", content, count=1)
    content = _LEADING_BACKTICKS_RE.sub("", content)
    content = content.strip("\n")
    return content + "\n" if content else ""


def _resolve_inside(root: Path, relative: str) -> Path:
    """Resolve *relative* under *root*, refusing anything that escapes it."""
    if not relative or not relative.strip():
        raise StagingError("Empty file path in project snapshot", path=relative)
    posix = PurePosixPath(relative.replace("\\", "/"))
    if posix.is_absolute() or os.path.isabs(relative):
        raise StagingError(f"Absolute path not allowed: {relative}", path=relative)
    target = (root / Path(*posix.parts)).resolve()
    if target != root and root not in target.parents:
        raise StagingError(f"Path escapes the build context: {relative}", path=relative)
    return target


def stage(
    files: Sequence[ProjectFile],
    definition_text: str,
    *,
    parent: Path | None = None,
    prefix: str = DEFAULT_PREFIX,
) -> Path:
    """Materialize a project snapshot and Dockerfile into a fresh directory.

    Args:
        files: Project entries to copy into the build context.
        definition_text: Dockerfile draft; code fences are stripped.
        parent: Directory to create the staging directory in.  Defaults to
            the system temp directory.
        prefix: Name prefix of the staging directory.

    Returns:
        Path of the new staging directory.

    Raises:
        StagingError: If a path escapes the root or a write fails.  The
            partially written directory is removed first.
    """
    try:
        if parent is not None:
            parent.mkdir(parents=True, exist_ok=True)
        root = Path(tempfile.mkdtemp(prefix=prefix, dir=parent)).resolve()
    except OSError as exc:
        raise StagingError(
            f"Cannot create staging directory under {parent or tempfile.gettempdir()}: {exc}"
        ) from exc

    try:
        for entry in files:
            target = _resolve_inside(root, entry.path)
            if target == root:
                raise StagingError(
                    f"Path resolves to the build context root: {entry.path}",
                    path=entry.path,
                )
            if entry.kind == FileKind.DIRECTORY:
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(entry.content, bytes):
                target.write_bytes(entry.content)
            else:
                target.write_text(entry.content, encoding="utf-8")

        (root / DEFINITION_FILENAME).write_text(
            sanitize_definition(definition_text), encoding="utf-8"
        )
    except StagingError:
        cleanup_staging(root)
        raise
    except OSError as exc:
        cleanup_staging(root)
        raise StagingError(f"Failed to write build context: {exc}") from exc

    logger.debug("Staged {count} file(s) into {root}", count=len(files), root=root)
    return root


def cleanup_staging(path: Path | None) -> None:
    """Remove a staging directory.  Errors are logged, never raised."""
    if path is None:
        return
    try:
        shutil.rmtree(path)
        logger.debug("Removed staging directory {path}", path=path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to remove staging directory {path}: {error}", path=path, error=exc)


def derive_image_tag(identifier: str, user: str | None = None) -> str:
    """Build an image tag ``<user>/<name>:latest`` from a repo URL or folder.

    Args:
        identifier: GitHub URL or local folder path of the project.
        user: Registry namespace.  Falls back to ``$DOCKER_USER`` and then
            ``anonymous``.

    Returns:
        A lowercase tag that ``docker build -t`` accepts.
    """
    namespace = user or os.environ.get("DOCKER_USER") or "anonymous"

    match = _GITHUB_RE.search(identifier)
    if match:
        name = match.group(2).removesuffix(".git")
    else:
        parts = [p for p in re.split(r"[\\/]", identifier) if p]
        name = parts[-1].removesuffix(".git") if parts else "project"

    name = _TAG_INVALID_RE.sub("-", name.lower()).strip("-._") or "project"
    namespace = _TAG_INVALID_RE.sub("-", namespace.lower()).strip("-._") or "anonymous"
    return f"{namespace}/{name}:latest"

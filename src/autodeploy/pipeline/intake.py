"""Load a project snapshot from a local directory.

Stands in for the upload / repository-fetch layer when autodeploy runs from
the command line: the directory tree becomes a list of ProjectFile entries
that staging copies into each attempt's build context.
"""

from collections.abc import Iterable, Sequence
from pathlib import Path

from loguru import logger

from autodeploy.models.build import FileKind, ProjectFile

DEFAULT_IGNORE: frozenset[str] = frozenset({
    ".git", ".hg", ".svn", "node_modules", "__pycache__",
    ".venv", "venv", ".mypy_cache", ".pytest_cache", ".tox",
    ".DS_Store", "Thumbs.db",
})

MAX_FILE_BYTES = 5 * 1024 * 1024


def load_project(
    root: Path,
    *,
    ignore: Iterable[str] = DEFAULT_IGNORE,
    max_file_bytes: int = MAX_FILE_BYTES,
    skip_dockerfile: bool = True,
) -> list[ProjectFile]:
    """Walk *root* and return its files as ProjectFile entries.

    Text files are decoded as UTF-8; anything else is kept as bytes.
    Symlinks are not followed.

    Args:
        root: Project directory.
        ignore: File or directory names skipped anywhere in the tree.
        max_file_bytes: Files larger than this are skipped with a warning.
        skip_dockerfile: Leave out a top-level ``Dockerfile`` since the
            staged definition replaces it.

    Returns:
        Entries sorted by path.

    Raises:
        NotADirectoryError: If *root* is not a directory.
    """
    if not root.is_dir():
        raise NotADirectoryError(f"Not a project directory: {root}")

    ignored = frozenset(ignore)
    files: list[ProjectFile] = []
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part in ignored for part in relative.parts):
            continue
        if path.is_symlink():
            logger.debug("Skipping symlink {path}", path=relative)
            continue
        rel = relative.as_posix()
        if path.is_dir():
            if not any(path.iterdir()):
                files.append(ProjectFile(path=rel, kind=FileKind.DIRECTORY))
            continue
        if skip_dockerfile and rel == "Dockerfile":
            continue
        size = path.stat().st_size
        if size > max_file_bytes:
            logger.warning(
                "Skipping {path}: {size} bytes exceeds limit {limit}",
                path=rel,
                size=size,
                limit=max_file_bytes,
            )
            continue
        data = path.read_bytes()
        try:
            content: str | bytes = data.decode("utf-8")
        except UnicodeDecodeError:
            content = data
        files.append(ProjectFile(path=rel, content=content))

    logger.info("Loaded {count} entries from {root}", count=len(files), root=root)
    return files


def file_manifest(files: Sequence[ProjectFile]) -> list[str]:
    """Return the paths of the file entries, in order."""
    return [f.path for f in files if f.kind == FileKind.FILE]

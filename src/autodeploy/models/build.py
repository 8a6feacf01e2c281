"""Build session, attempt, and classified error models."""

from datetime import datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class FileKind(StrEnum):
    """Kind of entry in a project snapshot."""

    FILE = "file"
    DIRECTORY = "directory"


class ErrorCategory(StrEnum):
    """Classification of container build failures."""

    MISSING_FILE = "missing_file"
    SYNTAX_ERROR = "syntax_error"
    DEPENDENCY_ERROR = "dependency_error"
    LANGUAGE_MISMATCH = "language_mismatch"
    PERMISSION_ERROR = "permission_error"


class SessionStatus(StrEnum):
    """Terminal status of a build session."""

    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    UNRECOVERABLE = "unrecoverable"


class ProjectFile(BaseModel):
    """One entry of a caller-supplied project snapshot.

    ``path`` is relative and slash separated.  Entries are never mutated,
    only copied into a staging directory.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    content: str | bytes = ""
    kind: FileKind = FileKind.FILE


class ClassifiedError(BaseModel):
    """A typed error extracted from raw build output."""

    model_config = ConfigDict(frozen=True)

    category: ErrorCategory
    message: str
    source_file: str | None = None
    line_number: int | None = None
    suggestion: str = ""
    proposed_fix: str = ""


class BuildAttemptRecord(BaseModel):
    """Record of a single build attempt, immutable once concluded."""

    model_config = ConfigDict(frozen=True)

    attempt_number: int
    build_definition_used: str
    raw_output_log: list[str] = []
    success: bool
    errors_found: list[ClassifiedError] = []
    exit_code: int | None = None
    timed_out: bool = False
    duration_seconds: float = 0.0
    decision: str | None = None
    timestamp: datetime

    @property
    def output_text(self) -> str:
        """The raw output chunks joined in arrival order."""
        return "".join(self.raw_output_log)


class BuildSession(BaseModel):
    """Complete result of one bounded build-retry loop."""

    session_id: str
    image_tag: str
    attempts: list[BuildAttemptRecord] = []
    final_status: SessionStatus
    final_build_definition: str
    preflight_errors: list[ClassifiedError] = []
    message: str = ""
    started_at: datetime
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        """Return True if the session ended with a successful build."""
        return self.final_status == SessionStatus.SUCCEEDED

    @property
    def all_errors(self) -> list[ClassifiedError]:
        """Pre-flight errors followed by every attempt's errors, in order."""
        errors = list(self.preflight_errors)
        for attempt in self.attempts:
            errors.extend(attempt.errors_found)
        return errors

    def save(self, path: Path) -> None:
        """Serialize the session to a JSON file.

        Args:
            path: Destination file path.
        """
        path.write_text(self.model_dump_json(indent=2))

    @classmethod
    def load(cls, path: Path) -> "BuildSession":
        """Deserialize a session from a JSON file.

        Args:
            path: Source file path.

        Returns:
            Loaded BuildSession instance.
        """
        return cls.model_validate_json(path.read_text())

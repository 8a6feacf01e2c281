"""Pattern-based classification of container build output.

``classify`` runs a fixed, ordered list of detectors over the raw output of
a ``docker build``.  Every detector runs; each may contribute zero or more
errors, and results keep detector order.  Detectors are allowed to overlap:
a missing ``go.mod`` is reported both by the quoted-path detector and by the
broader Go module detector, and downstream rewrite rules may key off either.

Output that matches nothing yields an empty list.  Classification never
raises.
"""

import re
from collections.abc import Callable

from autodeploy.models.build import ClassifiedError, ErrorCategory

# Generic fix suggestions per category, used for display and summaries.
ERROR_SUGGESTIONS: dict[ErrorCategory, str] = {
    ErrorCategory.MISSING_FILE: (
        "A file referenced by the Dockerfile is not in the build context. "
        "Add the file to the project or remove the instruction that needs it."
    ),
    ErrorCategory.SYNTAX_ERROR: "Fix the Dockerfile instruction or image tag syntax.",
    ErrorCategory.DEPENDENCY_ERROR: (
        "Install Docker and make sure the daemon is running, then retry."
    ),
    ErrorCategory.LANGUAGE_MISMATCH: (
        "The base image and build commands do not match the project language."
    ),
    ErrorCategory.PERMISSION_ERROR: (
        "Fix file permissions in the build context or run as a proper USER."
    ),
}

# Prefix of proposed fixes whose COPY source a local rewrite can drop.
REMOVE_COPY_FIX_PREFIX = "Remove COPY "

# Files that get a Go-specific suggestion when reported missing.
GO_MODULE_FILES: frozenset[str] = frozenset({"go.mod", "go.sum"})

_QUOTED_NOT_FOUND_RE = re.compile(r'"([^"]+)": not found')
# Same-line "COPY <src> ... not found"; a source followed by ":" is the
# "COPY failed:" prefix of the legacy builder, not a path.
_COPY_SOURCE_NOT_FOUND_RE = re.compile(
    r"\bCOPY[ \t]+(?:--\S+[ \t]+)*(?P<src>[^\s:]+)[ \t][^\n]*not found"
)
# Build context files that BuildKit refuses with "invalid file request".
_INVALID_REQUEST_FILES: dict[str, tuple[str, str]] = {
    ".dockerignore": (
        "Remove or recreate .dockerignore file",
        "Remove problematic .dockerignore and create minimal version",
    ),
    ".npmrc": (
        "Remove problematic .npmrc file",
        "Remove .npmrc file to prevent build context issues",
    ),
}
_TAG_ERROR_SUBSTRINGS: tuple[str, ...] = (
    "repository name must be lowercase",
    "invalid tag",
)
_PARSE_ERROR_RE = re.compile(
    r"(?:dockerfile parse error|unknown instruction:)",
    re.IGNORECASE,
)
_PARSE_LINE_RE = re.compile(r"line (\d+)", re.IGNORECASE)


def _detect_quoted_not_found(output: str) -> list[ClassifiedError]:
    errors: list[ClassifiedError] = []
    for match in _QUOTED_NOT_FOUND_RE.finditer(output):
        file_name = match.group(1)
        if file_name in GO_MODULE_FILES:
            errors.append(
                ClassifiedError(
                    category=ErrorCategory.MISSING_FILE,
                    message=f"Go module file not found: {file_name}",
                    source_file=file_name,
                    suggestion=(
                        f"Generate {file_name} or remove Go-specific commands "
                        "from the Dockerfile"
                    ),
                    proposed_fix="RUN go mod init your-project-name && go mod tidy",
                )
            )
        else:
            errors.append(
                ClassifiedError(
                    category=ErrorCategory.MISSING_FILE,
                    message=f"File not found: {file_name}",
                    source_file=file_name,
                    suggestion=f"Create missing file: {file_name}",
                    proposed_fix=f"COPY {file_name} ./",
                )
            )
    return errors


def _detect_go_module_missing(output: str) -> list[ClassifiedError]:
    if "go.mod" in output and "not found" in output:
        return [
            ClassifiedError(
                category=ErrorCategory.MISSING_FILE,
                message=(
                    "Go module files (go.mod/go.sum) are missing but the "
                    "Dockerfile tries to use them"
                ),
                source_file="go.mod",
                suggestion="Either generate Go module files or use a different base image",
                proposed_fix=(
                    "Remove Go-specific commands or generate go.mod with: "
                    "RUN go mod init project-name"
                ),
            )
        ]
    return []


def _detect_language_mismatch(output: str) -> list[ClassifiedError]:
    if "go build" in output and ".py" in output:
        return [
            ClassifiedError(
                category=ErrorCategory.LANGUAGE_MISMATCH,
                message="Trying to build Python file with Go compiler",
                suggestion="Use Python runtime instead of Go for Python files",
                proposed_fix="Change FROM golang:1.21 to FROM python:3.11-slim",
            )
        ]
    return []


def _detect_requirements_missing(output: str) -> list[ClassifiedError]:
    if "requirements.txt" in output and "not found" in output:
        return [
            ClassifiedError(
                category=ErrorCategory.MISSING_FILE,
                message="requirements.txt not found",
                source_file="requirements.txt",
                suggestion="Create requirements.txt file",
                proposed_fix="Generate requirements.txt from Python dependencies",
            )
        ]
    return []


def _detect_go_sum_missing(output: str) -> list[ClassifiedError]:
    if "go.sum" in output and "not found" in output:
        return [
            ClassifiedError(
                category=ErrorCategory.MISSING_FILE,
                message="go.sum not found",
                source_file="go.sum",
                suggestion="Generate go.sum file",
                proposed_fix="RUN go mod tidy",
            )
        ]
    return []


def _detect_permission_denied(output: str) -> list[ClassifiedError]:
    if "permission denied" in output or "EACCES" in output:
        return [
            ClassifiedError(
                category=ErrorCategory.PERMISSION_ERROR,
                message="Permission denied",
                suggestion="Fix file permissions or use proper user",
                proposed_fix="RUN chmod +x filename or add proper USER directive",
            )
        ]
    return []


def _detect_backend_missing(output: str) -> list[ClassifiedError]:
    if ("/backend" in output and "not found" in output) or (
        "failed to calculate checksum" in output and "backend" in output
    ):
        return [
            ClassifiedError(
                category=ErrorCategory.MISSING_FILE,
                message="backend directory not found",
                source_file="backend",
                suggestion="Remove or fix COPY command referencing backend directory",
                proposed_fix=f"{REMOVE_COPY_FIX_PREFIX}backend ./ or create backend directory",
            )
        ]
    return []


def _detect_copy_source_missing(output: str) -> list[ClassifiedError]:
    match = _COPY_SOURCE_NOT_FOUND_RE.search(output)
    if match is None:
        return []
    source = match.group("src")
    return [
        ClassifiedError(
            category=ErrorCategory.MISSING_FILE,
            message=f"Directory {source} not found",
            source_file=source,
            suggestion=f"Remove or fix COPY command referencing {source}",
            proposed_fix=f"{REMOVE_COPY_FIX_PREFIX}{source} or create the directory",
        )
    ]


def _detect_invalid_file_request(output: str) -> list[ClassifiedError]:
    errors: list[ClassifiedError] = []
    for file_name, (suggestion, fix) in _INVALID_REQUEST_FILES.items():
        if f"invalid file request {file_name}" in output:
            errors.append(
                ClassifiedError(
                    category=ErrorCategory.MISSING_FILE,
                    message=f"{file_name} file causing build issues",
                    source_file=file_name,
                    suggestion=suggestion,
                    proposed_fix=fix,
                )
            )
    return errors


def _detect_invalid_tag(output: str) -> list[ClassifiedError]:
    if any(s in output for s in _TAG_ERROR_SUBSTRINGS):
        return [
            ClassifiedError(
                category=ErrorCategory.SYNTAX_ERROR,
                message="Docker image tag is invalid",
                source_file="image-tag",
                suggestion="Fix Docker image tag to use lowercase",
                proposed_fix="Convert image name to lowercase and remove special characters",
            )
        ]
    return []


def _detect_parse_error(output: str) -> list[ClassifiedError]:
    match = _PARSE_ERROR_RE.search(output)
    if match is None:
        return []
    line_match = _PARSE_LINE_RE.search(output, match.start())
    line_number = int(line_match.group(1)) if line_match else None
    # Report the offending output line as the message.
    line_start = output.rfind("\n", 0, match.start()) + 1
    line_end = output.find("\n", match.end())
    offending = output[line_start : line_end if line_end != -1 else len(output)].strip()
    return [
        ClassifiedError(
            category=ErrorCategory.SYNTAX_ERROR,
            message=offending or "Dockerfile parse error",
            source_file="Dockerfile",
            line_number=line_number,
            suggestion="Fix the Dockerfile instruction reported by the parser",
            proposed_fix="Use a valid Dockerfile instruction (FROM, RUN, COPY, CMD, ...)",
        )
    ]


# Declaration order is the output order.  The first six detectors are the
# required set; extra detectors only ever get appended after them.
DETECTORS: tuple[Callable[[str], list[ClassifiedError]], ...] = (
    _detect_quoted_not_found,
    _detect_go_module_missing,
    _detect_language_mismatch,
    _detect_requirements_missing,
    _detect_go_sum_missing,
    _detect_permission_denied,
    _detect_backend_missing,
    _detect_copy_source_missing,
    _detect_invalid_file_request,
    _detect_invalid_tag,
    _detect_parse_error,
)


def classify(raw_output: str) -> list[ClassifiedError]:
    """Classify raw build output into an ordered list of typed errors.

    Args:
        raw_output: Combined stdout/stderr text of one build attempt.

    Returns:
        Errors in detector order.  Empty if nothing was recognized.
    """
    if not raw_output:
        return []

    errors: list[ClassifiedError] = []
    for detector in DETECTORS:
        errors.extend(detector(raw_output))
    return errors


def summarize_errors(errors: list[ClassifiedError], limit: int = 5) -> str:
    """Render a short one-line-per-error summary.

    Args:
        errors: Errors to summarize.
        limit: Maximum number of errors listed before eliding the rest.

    Returns:
        Human-readable summary, or an empty string for no errors.
    """
    if not errors:
        return ""
    lines = [f"{e.category.value}: {e.message}" for e in errors[:limit]]
    if len(errors) > limit:
        lines.append(f"... and {len(errors) - limit} more")
    return "; ".join(lines)

"""Static Dockerfile checks run before the first build.

Catches obvious problems without spending a build: a Go toolchain used on
Python sources, and ``pip install -r requirements.txt`` with no COPY of the
file.  Findings are reported as ClassifiedError records carrying the line
number they were found on.
"""

from autodeploy.models.build import ClassifiedError, ErrorCategory


class DefinitionCheckError(Exception):
    """Raised when static Dockerfile checks find issues.

    Attributes:
        issues: The findings, in line order.
    """

    def __init__(self, issues: list[ClassifiedError]) -> None:
        self.issues = issues
        issue_list = "\n".join(
            f"  - line {issue.line_number}: {issue.message}" for issue in issues
        )
        message = (
            f"Dockerfile check failed "
            f"({len(issues)} issue{'s' if len(issues) != 1 else ''}):\n{issue_list}"
        )
        super().__init__(message)


def validate_definition(definition: str) -> list[ClassifiedError]:
    """Check a Dockerfile for known mistakes.

    Args:
        definition: Dockerfile text.

    Returns:
        Findings in line order.  Empty list means nothing was found.
    """
    issues: list[ClassifiedError] = []
    mentions_python = ".py" in definition
    copies_requirements = "COPY requirements.txt" in definition or (
        "requirements.txt" in definition and "COPY . " in definition
    )

    for index, raw_line in enumerate(definition.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        if line.upper().startswith("FROM ") and "golang:" in line and mentions_python:
            issues.append(
                ClassifiedError(
                    category=ErrorCategory.LANGUAGE_MISMATCH,
                    message="Using Go base image for Python project",
                    line_number=index,
                    suggestion="Use Python base image for Python files",
                    proposed_fix="FROM python:3.11-slim",
                )
            )

        if "go build" in line and ".py" in line:
            issues.append(
                ClassifiedError(
                    category=ErrorCategory.LANGUAGE_MISMATCH,
                    message="Trying to build Python file with Go compiler",
                    line_number=index,
                    suggestion="Use Python to run .py files",
                    proposed_fix="RUN python filename.py",
                )
            )

        if "pip install" in line and "-r requirements.txt" in line and not copies_requirements:
            if "> requirements.txt" not in line:
                issues.append(
                    ClassifiedError(
                        category=ErrorCategory.MISSING_FILE,
                        message="Installing requirements.txt but not copying it",
                        source_file="requirements.txt",
                        line_number=index,
                        suggestion="Add COPY requirements.txt ./ before pip install",
                        proposed_fix="COPY requirements.txt ./",
                    )
                )

    return issues


def check_definition(definition: str) -> None:
    """Validate a Dockerfile and raise DefinitionCheckError on findings.

    Raises:
        DefinitionCheckError: If any issues are found.
    """
    issues = validate_definition(definition)
    if issues:
        raise DefinitionCheckError(issues)

"""Structured error display using Rich panels.

Renders classified build errors, failed sessions, and CLI-level exceptions
as Rich panels with the failing component, error category, message, and an
actionable suggestion.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from autodeploy.pipeline.classifier import ERROR_SUGGESTIONS

if TYPE_CHECKING:
    from rich.console import Console

    from autodeploy.models.build import BuildSession, ClassifiedError


class ErrorDisplay:
    """Renders structured error panels for build failures.

    All output goes through the shared ``Console`` instance (typically
    ``stderr=True``) so it does not interfere with stdout or the Live display.
    """

    def __init__(self, console: Console) -> None:
        self.console = console

    def show_error(
        self,
        source: str,
        error_class: str,
        message: str,
        suggestion: str,
    ) -> None:
        """Render a structured error panel.

        Args:
            source: Component that produced the error.
            error_class: Classification of the error.
            message: Human-readable error description (truncated to 500 chars).
            suggestion: Actionable fix suggestion.
        """
        body = Text()
        body.append("Source:      ", style="bold")
        body.append(f"{source}\n")
        body.append("Error Class: ", style="bold")
        body.append(f"{error_class}\n")
        body.append("Message:     ", style="bold")
        body.append(f"{message[:500]}\n")
        body.append("Suggestion:  ", style="bold")
        body.append(suggestion)

        self.console.print(Panel(body, border_style="red", title="Build Error"))

    def show_classified_errors(self, errors: list[ClassifiedError], title: str) -> None:
        """Render a table of classified errors, one row per error."""
        table = Table(title=title, expand=True)
        table.add_column("Category", style="bold")
        table.add_column("File")
        table.add_column("Line", justify="right")
        table.add_column("Message")
        table.add_column("Proposed fix")

        for error in errors:
            table.add_row(
                error.category.value,
                error.source_file or "-",
                str(error.line_number) if error.line_number is not None else "-",
                error.message,
                error.proposed_fix or error.suggestion or "-",
            )
        self.console.print(table)

    def show_session_failure(self, session: BuildSession) -> None:
        """Render a failed session: per-attempt errors plus the summary message."""
        table = Table(title="Attempts", expand=True)
        table.add_column("Attempt", justify="right")
        table.add_column("Exit", justify="right")
        table.add_column("Errors")
        table.add_column("Decision")

        for attempt in session.attempts:
            if attempt.timed_out:
                errors = "[red]timed out[/red]"
            else:
                errors = "\n".join(
                    f"{e.category.value}: {e.message}" for e in attempt.errors_found
                ) or "[dim]unclassified[/dim]"
            table.add_row(
                str(attempt.attempt_number),
                str(attempt.exit_code) if attempt.exit_code is not None else "-",
                errors,
                attempt.decision or "-",
            )

        hints = Text()
        for error in session.preflight_errors:
            hints.append(f"{error.message}\n", style="bold")
            hints.append(f"  {ERROR_SUGGESTIONS[error.category]}\n")
        hints.append(session.message)

        content = Group(table, hints) if session.attempts else hints
        self.console.print(
            Panel(content, border_style="red", title=f"Build {session.final_status.value}")
        )

    @staticmethod
    def format_error(error: Exception) -> tuple[str, str, str, str]:
        """Inspect an exception and return structured error fields.

        Returns:
            Tuple of ``(source, error_class, message, suggestion)``.
        """
        from autodeploy.agents.base import GenerationError
        from autodeploy.docker.invoker import BuildInvocationError
        from autodeploy.llm.base import LLMError
        from autodeploy.pipeline.definition_check import DefinitionCheckError
        from autodeploy.pipeline.staging import StagingError

        if isinstance(error, DefinitionCheckError):
            return (
                "definition_check",
                "invalid_dockerfile",
                str(error),
                "Edit the Dockerfile lines listed above",
            )

        if isinstance(error, StagingError):
            where = f" ({error.path})" if error.path else ""
            return (
                "staging",
                "staging_error",
                f"{error}{where}",
                "Check that project paths are relative and the temp directory is writable",
            )

        if isinstance(error, BuildInvocationError):
            return (
                "docker",
                "invocation_error",
                str(error),
                "Make sure the docker CLI is installed and on PATH",
            )

        if isinstance(error, GenerationError):
            return (
                error.agent_name or "generator",
                "generation_error",
                str(error),
                "Check the LLM API key and model settings, or pass --dockerfile",
            )

        if isinstance(error, LLMError):
            suggestion = (
                "Transient provider failure; run the command again shortly"
                if error.retryable
                else "Check the LLM API key, quota, and network access"
            )
            return (error.provider, "llm_error", error.message, suggestion)

        if isinstance(error, (FileNotFoundError, NotADirectoryError)):
            return (
                "cli",
                type(error).__name__,
                str(error),
                "Check the path arguments",
            )

        return (
            "unknown",
            type(error).__name__,
            str(error)[:500],
            "Check the session log for the full stack trace",
        )

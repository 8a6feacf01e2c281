"""Structured logging for build sessions.

Provides dual-sink logging via loguru:

- **Console sink**: Human-readable, shows the session id.  When a shared
  Rich ``Console`` is provided, output routes through it so log lines do not
  tear the Rich display.
- **File sink**: JSON-structured JSONL written to
  ``{log_dir}/{session_id}/session.jsonl`` for programmatic parsing.

Every attempt, including failures, is logged with the Dockerfile it used,
the classified errors, and the fix decision taken.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from pathlib import Path

    from rich.console import Console

    from autodeploy.models.build import BuildAttemptRecord, BuildSession


def setup_logging(
    log_dir: Path,
    session_id: str,
    console: Console | None = None,
    level: str = "INFO",
) -> Path:
    """Configure loguru sinks for one CLI run.

    Removes all existing handlers first to avoid duplicate output.

    Args:
        log_dir: Root directory for log storage.
        session_id: Identifier of the session; names the log subdirectory.
        console: Optional shared Rich Console for output routing.
        level: Minimum level for the console sink.

    Returns:
        Path of the JSONL log file.
    """
    logger.remove()

    if console is not None:
        logger.add(
            lambda msg: console.print(msg, end="", highlight=False, markup=False),
            format="{time:HH:mm:ss} | {level: <8} | {message}",
            level=level,
            colorize=False,
        )
    else:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level>"
                " | <cyan>{extra[session]}</cyan> | {message}"
            ),
            level=level,
            filter=lambda record: "session" in record["extra"],
        )
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level>"
                " | {message}"
            ),
            level=level,
            filter=lambda record: "session" not in record["extra"],
        )

    log_file = log_dir / session_id / "session.jsonl"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(log_file),
        format="{message}",
        serialize=True,
        level="DEBUG",
    )
    return log_file


def log_session_start(session_id: str, image_tag: str, max_retries: int) -> None:
    """Log the start of a build session."""
    with logger.contextualize(session=session_id):
        logger.info(
            "Session started: tag={tag} max_retries={max_retries}",
            tag=image_tag,
            max_retries=max_retries,
        )


def log_attempt(session_id: str, attempt: BuildAttemptRecord) -> None:
    """Log a concluded attempt.

    Logs at INFO level for successes, WARNING for failures.  The Dockerfile
    used is always logged at DEBUG level for the audit trail.
    """
    with logger.contextualize(session=session_id):
        if attempt.success:
            logger.info(
                "Attempt {attempt} succeeded in {duration:.1f}s",
                attempt=attempt.attempt_number,
                duration=attempt.duration_seconds,
            )
        else:
            categories = ", ".join(e.category.value for e in attempt.errors_found) or "unclassified"
            logger.warning(
                "Attempt {attempt} failed (exit={exit_code}, {categories}) in {duration:.1f}s; decision={decision}",
                attempt=attempt.attempt_number,
                exit_code=attempt.exit_code,
                categories=categories,
                duration=attempt.duration_seconds,
                decision=attempt.decision,
            )

        logger.debug(
            "Dockerfile (attempt {attempt}):\n{definition}",
            attempt=attempt.attempt_number,
            definition=attempt.build_definition_used,
        )


def log_session_complete(session: BuildSession) -> None:
    """Log the terminal status of a session."""
    with logger.contextualize(session=session.session_id):
        if session.succeeded:
            logger.info(
                "Session succeeded in {attempts} attempt(s)",
                attempts=len(session.attempts),
            )
        else:
            logger.error(
                "Session {status} after {attempts} attempt(s): {message}",
                status=session.final_status.value,
                attempts=len(session.attempts),
                message=session.message,
            )


def log_llm_call(
    session_id: str,
    model: str,
    input_tokens: int | None,
    output_tokens: int | None,
    latency_seconds: float | None = None,
) -> None:
    """Log an LLM API call with token counts and latency."""
    with logger.contextualize(session=session_id):
        logger.info(
            "LLM call: model={model} input_tokens={input_tokens} "
            "output_tokens={output_tokens} latency={latency}s",
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency=latency_seconds,
        )

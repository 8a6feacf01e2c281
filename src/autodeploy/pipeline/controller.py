"""Bounded build-classify-fix-retry loop.

BuildRetryController drives one build session through its states::

    idle -> probing -> attempting -> classifying -> deciding -> rewriting
         -> attempting ... -> succeeded | exhausted | unrecoverable

1. Probe the build tool.  Unavailable -> ``unrecoverable`` with a
   ``dependency_error`` and no attempt consumed.
2. Stage the project and current Dockerfile into a fresh directory and run
   one build.  Exit code zero -> ``succeeded``.
3. Classify the output, ask :func:`select_fix` for a decision, and either
   apply a local rewrite or delegate to the generation collaborator.
4. Retry with the new Dockerfile until the attempt ceiling.

All per-session state lives in local variables of :meth:`run` and in the
returned :class:`BuildSession`; the controller itself only holds injected
collaborators and read-only settings, so one controller can serve many
concurrent sessions.
"""

import asyncio
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from loguru import logger

from autodeploy.display.callbacks import ProgressCallback
from autodeploy.docker.invoker import BuildInvocationError, LogSink
from autodeploy.llm.response_parser import contains_from_instruction
from autodeploy.models.build import (
    BuildAttemptRecord,
    BuildSession,
    ClassifiedError,
    ErrorCategory,
    ProjectFile,
    SessionStatus,
)
from autodeploy.models.decision import (
    DelegateDecision,
    GeneratedFix,
    GiveUpDecision,
    PromptContext,
    RewriteDecision,
)
from autodeploy.models.execution import DockerStatus, InvocationResult
from autodeploy.pipeline.classifier import classify, summarize_errors
from autodeploy.pipeline.definition_check import validate_definition
from autodeploy.pipeline.fixes import select_fix
from autodeploy.pipeline.intake import file_manifest
from autodeploy.pipeline.logging import (
    log_attempt,
    log_llm_call,
    log_session_complete,
    log_session_start,
)
from autodeploy.pipeline.staging import (
    DEFAULT_PREFIX,
    DEFINITION_FILENAME,
    StagingError,
    cleanup_staging,
    sanitize_definition,
    stage,
)

DEFAULT_MAX_RETRIES = 3
DEFAULT_GENERATION_TIMEOUT = 120.0


class ControllerState(StrEnum):
    """States of the build-retry state machine."""

    IDLE = "idle"
    PROBING = "probing"
    ATTEMPTING = "attempting"
    CLASSIFYING = "classifying"
    DECIDING = "deciding"
    REWRITING = "rewriting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    UNRECOVERABLE = "unrecoverable"


class StatusProbe(Protocol):
    """Anything that can report whether the build tool is usable."""

    async def check_status(self) -> DockerStatus: ...


class Invoker(Protocol):
    """Anything that can run one build and stream its output."""

    async def invoke(
        self,
        definition_path: Path,
        context_path: Path,
        image_tag: str,
        sink: LogSink | None = None,
    ) -> InvocationResult: ...


class DefinitionGenerator(Protocol):
    """External text generation collaborator used for delegated fixes."""

    async def generate_fix(self, context: PromptContext) -> GeneratedFix: ...


class BuildRetryController:
    """Run build sessions against injected collaborators.

    Args:
        status_checker: Availability probe run before the first attempt.
        invoker: Build runner.
        generator: Collaborator for delegated fixes.  Without one, a
            delegate decision is treated as giving up.
        max_retries: Maximum number of build attempts per session.
        callback: Optional progress hooks (e.g. a Rich display).
        staging_parent: Directory holding per-attempt staging directories.
        staging_prefix: Name prefix of staging directories.
        lint_before_build: Log static Dockerfile findings before attempt 1.
        retry_unclassified: Retry the same Dockerfile when a failure matches
            no known pattern, instead of stopping immediately.
        generation_timeout: Seconds allowed for one delegated generation.
    """

    def __init__(
        self,
        status_checker: StatusProbe,
        invoker: Invoker,
        generator: DefinitionGenerator | None = None,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        callback: ProgressCallback | None = None,
        staging_parent: Path | None = None,
        staging_prefix: str = DEFAULT_PREFIX,
        lint_before_build: bool = True,
        retry_unclassified: bool = True,
        generation_timeout: float = DEFAULT_GENERATION_TIMEOUT,
    ) -> None:
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self.status_checker = status_checker
        self.invoker = invoker
        self.generator = generator
        self.max_retries = max_retries
        self.callback = callback
        self.staging_parent = staging_parent
        self.staging_prefix = staging_prefix
        self.lint_before_build = lint_before_build
        self.retry_unclassified = retry_unclassified
        self.generation_timeout = generation_timeout

    async def run(
        self,
        files: Sequence[ProjectFile],
        definition: str,
        image_tag: str,
        *,
        session_id: str | None = None,
        user_instruction: str | None = None,
    ) -> BuildSession:
        """Run one complete session.

        Args:
            files: Project snapshot copied into every build context.
            definition: Initial Dockerfile draft (code fences are stripped).
            image_tag: Tag passed to every build.
            session_id: Identifier for logs; generated if omitted.
            user_instruction: Free-text instruction forwarded to delegated
                fixes.

        Returns:
            The finished BuildSession.  Expected failures (tool missing,
            staging errors, spawn errors, generation errors) are reported in
            the session, never raised.

        Raises:
            asyncio.CancelledError: If the awaiting task is cancelled.  The
                active build process is killed and the staging directory
                removed first.
        """
        session_id = session_id or uuid.uuid4().hex[:12]
        started_at = datetime.now(tz=UTC)
        current = sanitize_definition(definition)
        manifest = file_manifest(files)
        attempts: list[BuildAttemptRecord] = []

        def finish(
            status: SessionStatus,
            message: str,
            preflight_errors: list[ClassifiedError] | None = None,
        ) -> BuildSession:
            session = BuildSession(
                session_id=session_id,
                image_tag=image_tag,
                attempts=attempts,
                final_status=status,
                final_build_definition=current,
                preflight_errors=preflight_errors or [],
                message=message,
                started_at=started_at,
                finished_at=datetime.now(tz=UTC),
            )
            self._enter(session_id, ControllerState(status.value))
            log_session_complete(session)
            if self.callback is not None:
                self.callback.on_session_complete(session_id, status.value, message)
            return session

        log_session_start(session_id, image_tag, self.max_retries)
        self._enter(session_id, ControllerState.IDLE)

        # -- probing ---------------------------------------------------------
        self._enter(session_id, ControllerState.PROBING)
        status = await self._probe()
        if not status.can_build:
            error = status.error or "Docker is not available for building"
            return finish(
                SessionStatus.UNRECOVERABLE,
                f"Docker not available: {error}",
                [
                    ClassifiedError(
                        category=ErrorCategory.DEPENDENCY_ERROR,
                        message=error,
                        suggestion="Please install and start Docker",
                        proposed_fix="Install Docker and ensure the daemon is running",
                    )
                ],
            )

        if self.lint_before_build:
            for issue in validate_definition(current):
                with logger.contextualize(session=session_id):
                    logger.warning(
                        "Dockerfile check, line {line}: {message}",
                        line=issue.line_number,
                        message=issue.message,
                    )

        attempt_number = 1
        while True:
            # -- attempting --------------------------------------------------
            self._enter(session_id, ControllerState.ATTEMPTING)
            if self.callback is not None:
                self.callback.on_attempt_start(session_id, attempt_number, self.max_retries)

            chunks: list[str] = []
            sink = self._make_sink(session_id, attempt_number, chunks)
            timestamp = datetime.now(tz=UTC)
            context_dir: Path | None = None
            try:
                context_dir = stage(
                    files,
                    current,
                    parent=self.staging_parent,
                    prefix=self.staging_prefix,
                )
                result = await self.invoker.invoke(
                    context_dir / DEFINITION_FILENAME, context_dir, image_tag, sink
                )
            except StagingError as exc:
                return finish(SessionStatus.UNRECOVERABLE, f"Staging failed: {exc}")
            except BuildInvocationError as exc:
                chunks.append(f"{exc}\n")
                attempts.append(
                    BuildAttemptRecord(
                        attempt_number=attempt_number,
                        build_definition_used=current,
                        raw_output_log=chunks,
                        success=False,
                        timestamp=timestamp,
                    )
                )
                log_attempt(session_id, attempts[-1])
                return finish(SessionStatus.UNRECOVERABLE, f"Build tool failed to start: {exc}")
            except asyncio.CancelledError:
                self._cancelled(session_id, attempt_number)
                raise
            finally:
                cleanup_staging(context_dir)

            if result.success:
                attempts.append(
                    self._record(attempt_number, current, chunks, result, [], None, timestamp)
                )
                self._attempt_done(session_id, attempts[-1])
                return finish(
                    SessionStatus.SUCCEEDED,
                    f"Build succeeded on attempt {attempt_number} of {self.max_retries}",
                )

            # -- classifying -------------------------------------------------
            self._enter(session_id, ControllerState.CLASSIFYING)
            errors = classify("".join(chunks))
            if result.timed_out and not errors:
                with logger.contextualize(session=session_id):
                    logger.warning("Attempt {attempt} timed out", attempt=attempt_number)

            # -- deciding ----------------------------------------------------
            self._enter(session_id, ControllerState.DECIDING)
            decision = select_fix(
                errors,
                current,
                attempt_number,
                self.max_retries,
                file_manifest=manifest,
                user_instruction=user_instruction,
            )

            at_ceiling = attempt_number >= self.max_retries
            unclassified_retry = (
                isinstance(decision, GiveUpDecision)
                and not errors
                and self.retry_unclassified
                and not at_ceiling
            )
            decision_kind = "retry" if unclassified_retry else decision.kind
            attempts.append(
                self._record(
                    attempt_number, current, chunks, result, errors, decision_kind, timestamp
                )
            )
            self._attempt_done(session_id, attempts[-1])

            if at_ceiling:
                return finish(SessionStatus.EXHAUSTED, self._failure_message(attempts, None))

            next_definition: str | None = None
            if isinstance(decision, RewriteDecision):
                with logger.contextualize(session=session_id):
                    logger.info(
                        "Applying local rewrites: {rules}",
                        rules=", ".join(decision.applied_rules),
                    )
                next_definition = decision.new_definition
            elif isinstance(decision, DelegateDecision):
                if self.generator is None:
                    return finish(
                        SessionStatus.EXHAUSTED,
                        self._failure_message(
                            attempts, "no local fix applies and no generator is configured"
                        ),
                    )
                try:
                    next_definition = await self._delegate(session_id, decision.prompt_context)
                except asyncio.CancelledError:
                    self._cancelled(session_id, attempt_number)
                    raise
                except Exception as exc:
                    with logger.contextualize(session=session_id):
                        logger.error("Delegated fix failed: {error}", error=exc)
                    return finish(
                        SessionStatus.UNRECOVERABLE,
                        self._failure_message(attempts, f"fix generation failed: {exc}"),
                    )
            elif unclassified_retry:
                with logger.contextualize(session=session_id):
                    logger.info("Unclassified failure, retrying the same Dockerfile")
                next_definition = current
            else:
                return finish(
                    SessionStatus.EXHAUSTED, self._failure_message(attempts, decision.reason)
                )

            # -- rewriting ---------------------------------------------------
            self._enter(session_id, ControllerState.REWRITING)
            current = next_definition
            attempt_number += 1

    async def _probe(self) -> DockerStatus:
        """Run the availability probe; a crashing probe counts as unavailable."""
        try:
            return await self.status_checker.check_status()
        except Exception as exc:
            logger.error("Docker status check failed: {error}", error=exc)
            return DockerStatus(
                is_installed=False,
                is_running=False,
                can_build=False,
                error=f"Docker status check failed: {exc}",
            )

    async def _delegate(self, session_id: str, context: PromptContext) -> str:
        """Resolve a delegate decision into a new Dockerfile.

        Raises:
            ValueError: If the collaborator returns no usable Dockerfile.
            Exception: Whatever the collaborator raises, including
                ``asyncio.TimeoutError``.
        """
        with logger.contextualize(session=session_id):
            logger.info("Delegating fix for {count} error(s)", count=len(context.errors))
        fix = await asyncio.wait_for(
            self.generator.generate_fix(context), timeout=self.generation_timeout
        )
        response = fix.response
        if response is not None:
            log_llm_call(
                session_id,
                response.model,
                response.input_tokens,
                response.output_tokens,
                response.latency_seconds,
            )
        candidate = sanitize_definition(fix.definition)
        if not contains_from_instruction(candidate):
            raise ValueError("generated Dockerfile has no FROM instruction")
        return candidate

    def _make_sink(self, session_id: str, attempt_number: int, chunks: list[str]) -> LogSink:
        def sink(chunk: str) -> None:
            chunks.append(chunk)
            if self.callback is not None:
                self.callback.on_log(session_id, attempt_number, chunk)

        return sink

    @staticmethod
    def _record(
        attempt_number: int,
        definition: str,
        chunks: list[str],
        result: InvocationResult,
        errors: list[ClassifiedError],
        decision: str | None,
        timestamp: datetime,
    ) -> BuildAttemptRecord:
        return BuildAttemptRecord(
            attempt_number=attempt_number,
            build_definition_used=definition,
            raw_output_log=list(chunks),
            success=result.success,
            errors_found=errors,
            exit_code=result.exit_code,
            timed_out=result.timed_out,
            duration_seconds=result.duration_seconds,
            decision=decision,
            timestamp=timestamp,
        )

    def _attempt_done(self, session_id: str, attempt: BuildAttemptRecord) -> None:
        log_attempt(session_id, attempt)
        if self.callback is not None:
            self.callback.on_attempt_complete(
                session_id,
                attempt.attempt_number,
                attempt.success,
                summarize_errors(attempt.errors_found),
                attempt.decision,
            )

    def _cancelled(self, session_id: str, attempt_number: int) -> None:
        self._enter(session_id, ControllerState.UNRECOVERABLE)
        with logger.contextualize(session=session_id):
            logger.warning("Session cancelled during attempt {attempt}", attempt=attempt_number)
        if self.callback is not None:
            self.callback.on_session_complete(
                session_id, SessionStatus.UNRECOVERABLE.value, "Build cancelled"
            )

    def _enter(self, session_id: str, state: ControllerState) -> None:
        with logger.contextualize(session=session_id):
            logger.debug("State -> {state}", state=state.value)
        if self.callback is not None:
            self.callback.on_state_change(session_id, state.value)

    def _failure_message(self, attempts: list[BuildAttemptRecord], reason: str | None) -> str:
        """Summarize why every attempt failed."""
        lines = [f"Build failed after {len(attempts)} attempt(s) of {self.max_retries}."]
        for attempt in attempts:
            if attempt.timed_out:
                detail = "timed out"
            else:
                detail = summarize_errors(attempt.errors_found, limit=3) or (
                    f"unrecognized failure (exit code {attempt.exit_code})"
                )
            lines.append(f"Attempt {attempt.attempt_number}: {detail}")
        if reason:
            lines.append(f"Stopped: {reason}")
        return "\n".join(lines)

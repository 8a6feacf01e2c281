"""Streaming ``docker build`` invocation.

BuildInvoker runs exactly one build-tool child process per call and forwards
its stdout and stderr to a caller-supplied sink as chunks arrive.  The two
streams are read concurrently, so chunks from stdout and stderr may
interleave in any order.

Guarantees:
- A timeout kills the child process and resolves as a failure
  (``timed_out=True``) instead of hanging the session.
- Cancelling the awaiting task kills the child process before the
  cancellation propagates, so no build process outlives its session.
- The invoker never retries; retry is the controller's job.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import time
from collections.abc import Callable
from pathlib import Path

from autodeploy.models.execution import InvocationResult

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]

_READ_SIZE = 4096


class BuildInvocationError(Exception):
    """Raised when the build tool process cannot be started.

    Attributes:
        command: The argv that failed to start.
    """

    def __init__(self, message: str, *, command: list[str]) -> None:
        self.command = command
        super().__init__(message)


class BuildInvoker:
    """Run ``docker build`` as a child process with streamed output.

    Args:
        binary: Build tool executable (``docker`` unless overridden).
        timeout: Maximum build time in seconds before the process is killed.
        extra_args: Additional arguments inserted after ``build``
            (e.g. ``["--progress=plain"]``).
    """

    def __init__(
        self,
        binary: str = "docker",
        timeout: float = 600.0,
        extra_args: list[str] | None = None,
    ) -> None:
        self._binary = binary
        self._timeout = timeout
        self._extra_args = list(extra_args or [])

    def build_command(
        self, definition_path: Path, context_path: Path, image_tag: str
    ) -> list[str]:
        """Return the argv for one build."""
        return [
            self._binary,
            "build",
            *self._extra_args,
            "-f",
            str(definition_path),
            "-t",
            image_tag,
            str(context_path),
        ]

    async def invoke(
        self,
        definition_path: Path,
        context_path: Path,
        image_tag: str,
        sink: LogSink | None = None,
    ) -> InvocationResult:
        """Run one build and stream its output to *sink*.

        Args:
            definition_path: Path of the Dockerfile.
            context_path: Build context directory.
            image_tag: Target image tag.
            sink: Callable receiving decoded output chunks.

        Returns:
            InvocationResult; ``success`` is True iff the exit code is zero.

        Raises:
            BuildInvocationError: If the process cannot be spawned.
            asyncio.CancelledError: If the awaiting task is cancelled (the
                child process is killed first).
        """
        command = self.build_command(definition_path, context_path, image_tag)
        emit = sink or (lambda _chunk: None)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise BuildInvocationError(
                f"Could not start build tool '{self._binary}': {exc}",
                command=command,
            ) from exc

        logger.info(
            "Started build pid=%s tag=%s timeout=%ss", process.pid, image_tag, self._timeout
        )
        start_time = time.monotonic()
        timed_out = False

        async def _pump(stream: asyncio.StreamReader | None) -> None:
            if stream is None:
                return
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            while True:
                data = await stream.read(_READ_SIZE)
                if not data:
                    tail = decoder.decode(b"", final=True)
                    if tail:
                        emit(tail)
                    return
                text = decoder.decode(data)
                if text:
                    emit(text)

        async def _run() -> int:
            await asyncio.gather(_pump(process.stdout), _pump(process.stderr))
            return await process.wait()

        try:
            exit_code = await asyncio.wait_for(_run(), timeout=self._timeout)
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning("Build pid=%s timed out after %ss, killing", process.pid, self._timeout)
            await self._kill(process)
            emit(f"\nBuild timed out after {self._timeout:g}s\n")
            exit_code = process.returncode if process.returncode is not None else -1
        except asyncio.CancelledError:
            logger.warning("Build pid=%s cancelled, killing", process.pid)
            await self._kill(process)
            raise

        duration = time.monotonic() - start_time
        success = exit_code == 0 and not timed_out
        logger.info(
            "Build pid=%s finished: exit_code=%s duration=%.2fs timed_out=%s",
            process.pid,
            exit_code,
            duration,
            timed_out,
        )
        return InvocationResult(
            success=success,
            exit_code=exit_code,
            duration_seconds=duration,
            timed_out=timed_out,
        )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        """Kill *process* and reap it."""
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        try:
            await asyncio.wait_for(process.wait(), timeout=10)
        except asyncio.TimeoutError:
            logger.error("Build pid=%s did not exit after kill", process.pid)

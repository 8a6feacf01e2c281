"""Progress callback protocol for build session lifecycle events.

Defines the ``ProgressCallback`` Protocol that display implementations must
satisfy.  The controller calls these hooks as the session moves through its
states; any object with matching methods can be passed in.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ProgressCallback(Protocol):
    """Protocol for build session progress callbacks."""

    def on_state_change(self, session_id: str, state: str) -> None:
        """Called when the controller enters a new state.

        Args:
            session_id: Session identifier.
            state: New state name (``"probing"``, ``"attempting"``, ...).
        """
        ...

    def on_log(self, session_id: str, attempt: int, chunk: str) -> None:
        """Called for every build output chunk, as it arrives.

        Args:
            session_id: Session identifier.
            attempt: Attempt number the chunk belongs to.
            chunk: Decoded output text.
        """
        ...

    def on_attempt_start(self, session_id: str, attempt: int, max_retries: int) -> None:
        """Called before each build attempt.

        Args:
            session_id: Session identifier.
            attempt: Attempt number (1-based).
            max_retries: Maximum attempts allowed.
        """
        ...

    def on_attempt_complete(
        self,
        session_id: str,
        attempt: int,
        success: bool,
        error_summary: str,
        decision: str | None,
    ) -> None:
        """Called after each attempt concludes.

        Args:
            session_id: Session identifier.
            attempt: Attempt number.
            success: Whether the build succeeded.
            error_summary: One-line summary of the classified errors.
            decision: Fix decision kind taken after a failure, if any.
        """
        ...

    def on_session_complete(self, session_id: str, status: str, message: str) -> None:
        """Called once when the session reaches a terminal state.

        Args:
            session_id: Session identifier.
            status: Terminal status value.
            message: Human-readable summary.
        """
        ...

"""Rich-based build session display with a Live attempts table and log tail.

``SessionDisplay`` implements the ``ProgressCallback`` protocol.  In a
terminal it renders a Live layout: one row per build attempt plus the last
few lines of build output.  In non-TTY environments (CI, piped output) it
falls back to plain status lines.

All Rich output goes through a ``Console(stderr=True)`` so stdout stays clean
for the final Dockerfile.
"""

from __future__ import annotations

from collections import deque

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from autodeploy.display.callbacks import ProgressCallback

# Number of build output lines kept visible under the attempts table.
LOG_TAIL_LINES = 12

_STATUS_STYLES = {
    "running": "[yellow]running[/yellow]",
    "succeeded": "[green]succeeded[/green]",
    "failed": "[red]failed[/red]",
}

_TERMINAL_STYLES = {
    "succeeded": ("green", "Build Succeeded"),
    "exhausted": ("red", "Retries Exhausted"),
    "unrecoverable": ("red", "Build Aborted"),
}


class SessionDisplay(ProgressCallback):
    """Interactive Rich display for build sessions.

    Args:
        console: Console to render to; defaults to ``Console(stderr=True)``.
        show_logs: Stream build output (tail in Live mode, every line
            otherwise).
    """

    def __init__(self, console: Console | None = None, show_logs: bool = True) -> None:
        self.console = console or Console(stderr=True)
        self._interactive: bool = self.console.is_terminal
        self._show_logs = show_logs

        self._state: dict[str, str] = {}
        self._attempts: dict[tuple[str, int], dict] = {}
        self._tail: deque[str] = deque(maxlen=LOG_TAIL_LINES)
        self._partial = ""
        self._live: Live | None = None

    # ------------------------------------------------------------------
    # Rich renderable builders
    # ------------------------------------------------------------------

    def _build_table(self) -> Table:
        """Build the attempts table."""
        table = Table(title="Build Attempts", expand=True)
        table.add_column("Session", style="dim")
        table.add_column("Attempt", justify="right")
        table.add_column("Status")
        table.add_column("Errors")
        table.add_column("Decision")

        for (session_id, attempt), row in self._attempts.items():
            table.add_row(
                session_id,
                f"{attempt}/{row['max_retries']}",
                _STATUS_STYLES.get(row["status"], row["status"]),
                row["errors"] or "-",
                row["decision"] or "-",
            )
        return table

    def _build_renderable(self) -> Group:
        states = ", ".join(f"{sid}: {state}" for sid, state in self._state.items())
        panel = Panel(self._build_table(), border_style="blue", title="autodeploy", subtitle=states)
        if not self._show_logs:
            return Group(panel)
        logs = Text("\n".join(self._tail), style="dim")
        return Group(panel, Panel(logs, title="Build output", border_style="dim"))

    # ------------------------------------------------------------------
    # Lifecycle methods
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the Live display (interactive mode only)."""
        if self._interactive and self._live is None:
            self._live = Live(self._build_renderable(), console=self.console, refresh_per_second=4)
            self._live.start()

    def stop(self) -> None:
        """Stop the Live display if active."""
        if self._live is not None:
            self._live.stop()
            self._live = None

    # ------------------------------------------------------------------
    # ProgressCallback implementation
    # ------------------------------------------------------------------

    def on_state_change(self, session_id: str, state: str) -> None:
        self._state[session_id] = state
        self._refresh()

    def on_log(self, session_id: str, attempt: int, chunk: str) -> None:
        if not self._show_logs:
            return
        lines = (self._partial + chunk).split("\n")
        self._partial = lines.pop()
        for line in lines:
            if self._interactive:
                self._tail.append(line)
            else:
                self.console.print(f"[{session_id}#{attempt}] {line}", markup=False, highlight=False)
        self._refresh()

    def on_attempt_start(self, session_id: str, attempt: int, max_retries: int) -> None:
        self._partial = ""
        self._tail.clear()
        self._attempts[(session_id, attempt)] = {
            "status": "running",
            "max_retries": max_retries,
            "errors": "",
            "decision": None,
        }
        self._refresh()

        if not self._interactive:
            self.console.print(
                f"[{session_id}] Attempt {attempt}/{max_retries}: building",
                markup=False,
                highlight=False,
            )

    def on_attempt_complete(
        self,
        session_id: str,
        attempt: int,
        success: bool,
        error_summary: str,
        decision: str | None,
    ) -> None:
        row = self._attempts.setdefault(
            (session_id, attempt),
            {"status": "running", "max_retries": attempt, "errors": "", "decision": None},
        )
        row["status"] = "succeeded" if success else "failed"
        row["errors"] = error_summary[:120]
        row["decision"] = decision
        self._refresh()

        if not self._interactive:
            outcome = "succeeded" if success else f"failed ({error_summary or 'unclassified'})"
            suffix = f", next: {decision}" if decision else ""
            self.console.print(
                f"[{session_id}] Attempt {attempt} {outcome}{suffix}", markup=False, highlight=False
            )

    def on_session_complete(self, session_id: str, status: str, message: str) -> None:
        self._state[session_id] = status
        self.stop()
        style, title = _TERMINAL_STYLES.get(status, ("yellow", status))
        self.console.print(Panel(Text(message), border_style=style, title=title))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _refresh(self) -> None:
        """Rebuild and update the Live renderable if in interactive mode."""
        if self._interactive and self._live is not None:
            self._live.update(self._build_renderable())

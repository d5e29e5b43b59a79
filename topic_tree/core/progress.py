"""
Global progress reporting for the extraction pipeline.

Shows the current pipeline stage (transcribe, extract, validate, lay out) in a
rich status spinner and leaves a checkmark line behind for each finished stage.
Outside the CLI no status is initialized and every call is a no-op.
"""

from typing import List, Optional

from rich.console import Console
from rich.status import Status


class ProgressReporter:
    """Tracks pipeline stages and prints completed ones."""

    def __init__(self):
        self._status: Optional[Status] = None
        self._console: Optional[Console] = None
        self._current_step: Optional[str] = None
        self.completed: List[str] = []

    def initialize(self, console: Console, initial_message: str = "Starting…") -> Status:
        """
        Bind to a console and return the status to use as a context manager.
        """
        self._console = console
        self._status = console.status(f"[dim]{initial_message}[/dim]")
        self._current_step = initial_message
        self.completed = []
        return self._status

    def step(self, message: str) -> None:
        """Finish the current stage and start a new one."""
        if self._status is None:
            return
        self.complete_step()
        self._current_step = message
        self._status.update(f"[dim]{message}[/dim]")

    def complete_step(self, message: Optional[str] = None) -> None:
        if self._current_step is None:
            return
        done = message or self._current_step
        self.completed.append(done)
        if self._console is not None:
            self._console.print(f"[green]✓[/green] [dim]{done}[/dim]")
        self._current_step = None

    def complete_sub_step(self, message: str) -> None:
        """Print an indented detail line under the current stage."""
        if self._console is not None:
            self._console.print(f"  [green]✓[/green] [dim]{message}[/dim]")


# Global reporter instance
reporter = ProgressReporter()

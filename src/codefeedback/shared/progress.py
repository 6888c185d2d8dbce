"""Rich progress display and prompts for sequential repository analysis."""

from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.prompt import Confirm

from codefeedback.schemas.repository import RemoteFileEntry

console = Console()


class ScanProgress:
    """One progress bar over the files of a scan, advanced per analyzed file."""

    def __init__(self, total: int, action_label: str, *, start: int = 0) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        )
        self._action_label = action_label
        self._task_id = self._progress.add_task(
            f"[cyan]{action_label}[/]", total=total, completed=start
        )

    def __enter__(self) -> "ScanProgress":
        self._progress.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.__exit__(*args)

    def pause(self) -> None:
        self._progress.stop()

    def resume(self) -> None:
        self._progress.start()

    def start_file(self, entry: RemoteFileEntry) -> None:
        self._progress.update(
            self._task_id,
            description=f"[cyan]{self._action_label}[/] {entry.path}",
        )

    def finish_file(self, entry: RemoteFileEntry) -> None:
        self._progress.console.print(f"  [green]✓[/] {entry.path}")
        self._progress.advance(self._task_id)

    def fail_file(self, entry: RemoteFileEntry, error: str) -> None:
        self._progress.update(
            self._task_id,
            description=f"[red]✗ {entry.path}: {error}[/]",
        )

    def log_event(self, message: str, style: str = "dim") -> None:
        """Print a persistent line above the bar."""
        self._progress.console.print(f"  [{style}]{message}[/]")


def print_phase(label: str) -> None:
    console.print(Panel(f"[bold]{label}[/bold]", style="blue"))


def confirm_next(entry: RemoteFileEntry, progress: ScanProgress | None = None) -> bool:
    """Ask whether to analyze ``entry``; always yes when stdin is not a terminal."""
    if not sys.stdin.isatty():
        return True
    return _ask(f"Analyze [bold]{entry.path}[/]?", progress)


def confirm_retry(entry: RemoteFileEntry, progress: ScanProgress | None = None) -> bool:
    """Ask whether to analyze ``entry`` again after a failure; never when stdin is not a terminal."""
    if not sys.stdin.isatty():
        return False
    return _ask(f"Retry [bold]{entry.path}[/]?", progress)


def _ask(question: str, progress: ScanProgress | None) -> bool:
    if progress is not None:
        progress.pause()
    # Keep log lines from interleaving with the prompt.
    root_logger = logging.getLogger()
    prev_level = root_logger.level
    root_logger.setLevel(logging.CRITICAL)
    try:
        return Confirm.ask(question, default=True, console=console)
    except EOFError:
        return False
    finally:
        root_logger.setLevel(prev_level)
        if progress is not None:
            progress.resume()

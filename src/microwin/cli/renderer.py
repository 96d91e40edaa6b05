"""Rich output rendering for the CLI."""

import logging
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table

from ..decomposition import progress_tracker
from ..models.task_models import Task
from ..models.orchestration_models import Notification
from .config import CLIConfig

logger = logging.getLogger(__name__)


def _minutes(value: Optional[float]) -> str:
    return f"{value:g}" if value is not None else "-"


class OutputRenderer:
    """
    Rich output renderer for CLI.

    Handles task tables, progress, history and notifications.
    """

    def __init__(
        self,
        config: Optional[CLIConfig] = None,
        console: Optional[Console] = None,
    ):
        """
        Initialize output renderer.

        Args:
            config: CLI configuration
            console: Rich console (creates new if not provided)
        """
        self.config = config or CLIConfig()
        self.console = console or Console()

    def render_task(self, task: Optional[Task], focus: bool = False) -> None:
        """
        Render the current task with its progress.

        Args:
            task: Task to render
            focus: Show only the next actionable step
        """
        if task is None:
            self.console.print("[dim]No current task. Start one with `microwin new`.[/dim]")
            return

        stats = progress_tracker.completion_stats(task)
        self.console.print(Panel(task.main_task, title="Task", expand=False))
        self.console.print(
            ProgressBar(total=max(stats.total_count, 1), completed=stats.completed_count, width=40)
        )
        self.console.print(
            f"{stats.completed_count}/{stats.total_count} done ({stats.percent:.0f}%), "
            f"~{progress_tracker.remaining_minutes(task):g} min left"
        )

        if focus:
            self._render_focus(task)
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("#", justify="right")
        table.add_column("")
        table.add_column("Step")
        if self.config.show_estimates:
            table.add_column("Min", justify="right")

        for i, step in enumerate(task.steps, start=1):
            self._add_row(table, str(i), step.completed, step.text, step.estimated_minutes)
            for j, sub in enumerate(step.sub_steps, start=1):
                self._add_row(
                    table, f"{i}.{j}", sub.completed, f"  {sub.text}", sub.estimated_minutes
                )

        self.console.print(table)

    def _add_row(
        self,
        table: Table,
        ref: str,
        completed: bool,
        text: str,
        minutes: Optional[float],
    ) -> None:
        mark = "[green]✓[/green]" if completed else "○"
        style = "dim strike" if completed else None
        cells = [ref, mark, text]
        if self.config.show_estimates:
            cells.append(_minutes(minutes))
        table.add_row(*cells, style=style)

    def _render_focus(self, task: Task) -> None:
        step = progress_tracker.next_actionable_step(task)
        if step is None:
            self.console.print("[bold green]Everything is done. Nice work![/bold green]")
            return

        index = task.steps.index(step) + 1
        pending = [s for s in step.sub_steps if not s.completed]
        if pending:
            sub_index = step.sub_steps.index(pending[0]) + 1
            self.console.print(
                f"Next: [bold]{index}.{sub_index}[/bold] {pending[0].text} "
                f"({_minutes(pending[0].estimated_minutes)} min)  [dim]part of: {step.text}[/dim]"
            )
        else:
            self.console.print(
                f"Next: [bold]{index}[/bold] {step.text} ({_minutes(step.estimated_minutes)} min)"
            )

    def render_milestone(self, completed_count: int) -> None:
        """Celebrate every fifth completed item."""
        self.console.print(
            f"[bold magenta]{completed_count} micro-wins! Keep the streak going.[/bold magenta]"
        )

    def render_history(self, history: List[Task]) -> None:
        """Render archived tasks, newest first."""
        if not history:
            self.console.print("[dim]You have no archived tasks yet.[/dim]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("ID")
        table.add_column("Task")
        table.add_column("Done", justify="right")

        for task in sorted(history, key=lambda t: t.created_at, reverse=True):
            stats = progress_tracker.completion_stats(task)
            table.add_row(
                task.id[:8],
                task.main_task,
                f"{stats.completed_count}/{stats.total_count}",
            )

        self.console.print(table)

    def render_notification(self, notification: Notification) -> None:
        """Render a failure notice."""
        self.console.print(
            f"[bold red]{notification.action} failed:[/bold red] {notification.message}"
        )

    def render_info(self, message: str) -> None:
        self.console.print(f"[cyan]{message}[/cyan]")

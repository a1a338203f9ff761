"""
Manages a Rich Live display for one running task: header, counters with an
overall progress bar, and the tail of the session log.
"""

import asyncio
from datetime import datetime

from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn
from rich.text import Text

from adx_batch.core import DownloadSession
from adx_batch.utils.formatting import format_duration

from .formatters import build_status_panel

LOG_TAIL_LINES = 12


class ProgressManager:
    """Renders the state of a `DownloadSession` while its task runs."""

    def __init__(self, console: Console):
        self.console = console
        self.overall_progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            MofNCompleteColumn(),
            console=console,
        )
        self._overall_task_id: TaskID | None = None
        self._live: Live | None = None
        self._layout: Layout | None = None
        self._start_time: datetime | None = None

    def _create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="status", size=11),
            Layout(name="logs", ratio=1),
        )
        return layout

    def _generate_header(self, session: DownloadSession) -> Panel:
        elapsed = 0.0
        if self._start_time:
            elapsed = (datetime.now() - self._start_time).total_seconds()
        header_text = Text()
        header_text.append("ADX Batch ", style="bold cyan")
        header_text.append("│ ", style="dim")
        header_text.append(f"Elapsed: {format_duration(elapsed)}", style="yellow")
        header_text.append(" │ ", style="dim")
        header_text.append(f"Selected: {session.deduped_count}", style="magenta")
        header_text.append(" │ ", style="dim")
        header_text.append(session.orchestrator.state, style="bold")
        return Panel(header_text, border_style="cyan")

    def _generate_status(self, session: DownloadSession) -> Group:
        view = session.status_view
        if view is not None:
            total = view.total_ids or None
            if self._overall_task_id is None:
                self._overall_task_id = self.overall_progress.add_task(
                    "Overall Progress", total=total
                )
            self.overall_progress.update(
                self._overall_task_id, total=total, completed=view.processed_ids
            )
        return Group(build_status_panel(view, session.task_id), self.overall_progress)

    def _generate_logs(self, session: DownloadSession) -> Panel:
        lines = session.log_buffer.tail(LOG_TAIL_LINES)
        if not lines:
            body = Text("Waiting for task events...", style="dim italic", justify="center")
        else:
            body = Text("\n".join(lines))
        return Panel(
            body,
            title=f"[bold]Log ({len(session.log_buffer)})[/bold]",
            border_style="green",
        )

    def update(self, session: DownloadSession) -> None:
        """Refreshes every panel from the session's current state."""
        if not self._layout:
            return
        self._layout["header"].update(self._generate_header(session))
        self._layout["status"].update(self._generate_status(session))
        self._layout["logs"].update(self._generate_logs(session))

    async def __aenter__(self):
        self._start_time = datetime.now()
        self._layout = self._create_layout()
        self._live = Live(
            self._layout,
            console=self.console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._live:
            await asyncio.sleep(0.2)
            self._live.stop()

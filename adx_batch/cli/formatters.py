"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from adx_batch.models import ManifestDescriptor, Task, TaskStatus
from adx_batch.models.task import TaskStatusView
from adx_batch.storage.config_manager import SENSITIVE_KEYS
from adx_batch.utils.formatting import mask_secret

STATUS_STYLES = {
    TaskStatus.PENDING: "white",
    TaskStatus.RUNNING: "cyan",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.CANCELLED: "yellow",
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "IOFailure": [
            "• Make sure the worker engine is running.",
            "• Check `engine_url` with `adx-batch --show-config`.",
            "• Run the command with -vv for detailed logs.",
        ],
        "ValidationFailure": [
            "• Check the required options: output directory, connect.sid, key or captcha.",
            "• Select at least one manifest (paths, ids, or --all).",
        ],
        "ConfigurationError": [
            "• Fix the value reported above in the configuration file.",
            "• Run `adx-batch init --force` to write a fresh configuration.",
        ],
        "ClientConnectorError": [
            "• The worker engine is not reachable.",
            "• Start the engine or point `--engine-url` at it.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key in SENSITIVE_KEYS and value:
            value = mask_secret(value)
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def build_catalog_table(
    catalog: list[ManifestDescriptor], selected: Optional[set[str]] = None
) -> Table:
    """Renders the catalog, marking selected manifests."""
    selected = selected or set()
    table = Table(box=box.SIMPLE_HEAVY, show_lines=False)
    table.add_column("", width=1)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Path", style="dim")
    table.add_column("Charts", justify="right")
    table.add_column("Source")

    for item in catalog:
        source_style = "magenta" if item.source == "overlay" else "green"
        table.add_row(
            "[green]✓[/green]" if item.path in selected else "",
            item.id,
            item.name,
            item.relative_path or item.path,
            str(item.level_count),
            f"[{source_style}]{item.source}[/{source_style}]",
        )
    return table


def build_status_panel(view: Optional[TaskStatusView], task_id: str | None = None) -> Panel:
    """Renders the task counters, or a placeholder when no state is known yet."""
    title = "[bold]Task Status[/bold]"
    if task_id:
        title += f" [dim]{task_id}[/dim]"

    if view is None:
        return Panel(
            Text("No task state yet...", style="dim italic", justify="center"),
            title=title,
            border_style="blue",
        )

    style = STATUS_STYLES.get(view.status, "white")
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold cyan", justify="right")
    grid.add_column(style="white")
    grid.add_column(style="bold cyan", justify="right")
    grid.add_column(style="white")
    grid.add_row("Status:", f"[{style}]{view.status.value}[/{style}]", "", "")
    grid.add_row("Total:", str(view.total_ids), "Processed:", str(view.processed_ids))
    grid.add_row(
        "OK:",
        f"[green]{view.ok_count}[/green]",
        "Skipped:",
        f"[yellow]{view.skip_count}[/yellow]",
    )
    grid.add_row(
        "Failed:",
        f"[red]{view.fail_count}[/red]",
        "New files:",
        f"[magenta]{view.new_files_count}[/magenta]",
    )
    grid.add_row("Bundle:", view.bundle_output_path, "", "")
    return Panel(grid, title=title, border_style=style)


def print_task_summary(task: Task, console: Console | None = None):
    """Prints the final status panel, the engine message and any failed items."""
    console = console or Console()
    console.print(build_status_panel(TaskStatusView.from_task(task), task.task_id))
    if task.message:
        console.print(f"[dim]{task.message}[/dim]")

    if task.fail_items:
        table = Table(
            title=f"Failed items ({len(task.fail_items)})",
            box=box.SIMPLE,
            title_style="bold red",
        )
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Reason")
        for item in task.fail_items:
            table.add_row(item.id, item.reason)
        console.print(table)

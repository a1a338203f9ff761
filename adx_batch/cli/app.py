"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import contextlib
import logging
import os
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from adx_batch import __version__
from adx_batch.core import DownloadSession
from adx_batch.engine import HttpTaskEngine
from adx_batch.exceptions import AdxBatchError
from adx_batch.models import ClientConfig, TaskStatus
from adx_batch.storage.config_manager import ConfigManager

from .formatters import build_catalog_table, print_config, print_task_summary
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("adx_batch")

app = typer.Typer(
    name="adx-batch",
    help=(
        "Select chart manifests and run batch downloads on the worker engine."
        " Use 'adx-batch <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

WATCH_REFRESH_SECONDS = 0.2


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "adx-batch"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict | None = None) -> ClientConfig:
    cli_options = {k: v for k, v in (cli_options or {}).items() if v is not None}
    return ConfigManager(CONFIG_FILE).load_config(cli_options)


def _new_session(engine: HttpTaskEngine, config: ClientConfig) -> DownloadSession:
    return DownloadSession(
        engine,
        poll_interval=config.poll_interval_ms / 1000,
        log_capacity=config.log_capacity,
    )


def select_manifests(session: DownloadSession, refs: list[str]) -> list[str]:
    """
    Selects catalog entries matching each ref by path, id or relative path.

    Returns the refs that matched nothing.
    """
    unknown = []
    for ref in refs:
        matches = [
            item.path
            for item in session.catalog
            if ref in (item.path, item.id, item.relative_path)
        ]
        if not matches:
            unknown.append(ref)
        for path in matches:
            if path not in session.selected_paths:
                session.toggle(path)
    return unknown


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """ADX batch download controller"""
    if version:
        console.print(f"[bold]adx-batch[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("adx_batch").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]adx-batch init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config = _load_config()
        print_config(
            CONFIG_FILE,
            config.model_dump(include=ClientConfig.get_ini_keys()),
        )
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    connect_sid: str = typer.Argument(..., help="The connect.sid session cookie."),
    engine_url: str | None = typer.Option(
        None, "--engine-url", help="Base URL of the worker engine."
    ),
    output_dir: str | None = typer.Option(
        None, "--output-dir", "-o", help="Default download directory."
    ),
    key: str | None = typer.Option(None, "--key", help="Default download key."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Write a configuration file with the session credential and defaults."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        key_name: value
        for key_name, value in {
            "connect_sid": connect_sid.strip(),
            "engine_url": engine_url,
            "output_dir": output_dir,
            "key": key,
        }.items()
        if value is not None
    }
    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Next: [cyan]adx-batch catalog[/cyan] to see available manifests.")


@app.command()
def catalog(
    refresh_dir: str | None = typer.Option(
        None, "--refresh", "-r", help="Rebuild the catalog from this directory first."
    ),
    engine_url: str | None = typer.Option(
        None, "--engine-url", help="Base URL of the worker engine."
    ),
):
    """List the manifests the engine can download."""
    config = _load_config({"engine_url": engine_url})

    async def _catalog_async():
        async with HttpTaskEngine(config.engine_url) as engine:
            session = _new_session(engine, config)
            if refresh_dir is not None:
                await session.refresh_catalog_from_directory(refresh_dir)
                console.print(f"[green]✓ Catalog refreshed from {refresh_dir}[/green]")
            else:
                await session.load_catalog()
            console.print(build_catalog_table(session.catalog))
            console.print(f"[dim]{len(session.catalog)} manifest(s)[/dim]")

    asyncio.run(_catalog_async())


@app.command(name="run")
def run_command(
    manifests: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Manifest paths, ids or relative paths to download."
    ),
    select_all: bool = typer.Option(
        False, "--all", "-a", help="Download every manifest in the catalog."
    ),
    refresh_dir: str | None = typer.Option(
        None, "--refresh", "-r", help="Rebuild the catalog from this directory first."
    ),
    # --- Authentication ---
    connect_sid: str | None = typer.Option(
        None, "--connect-sid", help="The connect.sid session cookie."
    ),
    auth_mode: str | None = typer.Option(
        None, "--auth-mode", help="How to authenticate downloads: key or captcha."
    ),
    key: str | None = typer.Option(None, "--key", help="Download key (auth mode key)."),
    captcha: str | None = typer.Option(
        None, "--captcha", help="Captcha code (auth mode captcha)."
    ),
    # --- Output Options ---
    output_dir: str | None = typer.Option(
        None, "--output-dir", "-o", help="Directory for downloaded files."
    ),
    output_format: str | None = typer.Option(
        None, "--format", help="Output container: adx or zip."
    ),
    download_no_bga: bool | None = typer.Option(
        None,
        "--no-bga/--with-bga",
        help="Download the variant without background video.",
    ),
    auto_bundle: bool | None = typer.Option(
        None, "--bundle/--no-bundle", help="Bundle new files into one package."
    ),
    bundle_output_path: str | None = typer.Option(
        None, "--bundle-output", help="Path of the bundle package (.adx)."
    ),
    # --- Engine Behavior ---
    retries: int | None = typer.Option(
        None, "--retries", help="Retries per item on the engine side."
    ),
    request_interval_ms: int | None = typer.Option(
        None, "--interval", help="Delay between item requests, in milliseconds."
    ),
    engine_url: str | None = typer.Option(
        None, "--engine-url", help="Base URL of the worker engine."
    ),
):
    """Start a download task and follow it until it finishes."""
    if not manifests and not select_all:
        console.print(
            "[red]✗ No manifests selected.[/red] "
            "Pass manifest paths/ids or use [cyan]--all[/cyan]."
        )
        raise typer.Exit(code=1)

    config = _load_config(
        {
            "engine_url": engine_url,
            "connect_sid": connect_sid,
            "auth_mode": auth_mode,
            "key": key,
            "captcha": captcha,
            "output_dir": output_dir,
            "output_format": output_format,
            "download_no_bga": download_no_bga,
            "auto_bundle": auto_bundle,
            "bundle_output_path": bundle_output_path,
            "retries": retries,
            "request_interval_ms": request_interval_ms,
        }
    )

    async def _run_async() -> TaskStatus | None:
        async with HttpTaskEngine(config.engine_url) as engine:
            session = _new_session(engine, config)
            if refresh_dir is not None:
                await session.refresh_catalog_from_directory(refresh_dir)
            else:
                await session.load_catalog()

            if select_all:
                session.select_all()
            else:
                for ref in select_manifests(session, manifests or []):
                    log.warning(f"[yellow]⚠ No manifest matches '{ref}'.[/yellow]")

            console.print(
                f"[bold cyan]Starting task with {session.deduped_count} "
                f"manifest(s)...[/bold cyan]"
            )
            try:
                async with ProgressManager(console) as progress:
                    task_id = await session.launch(config.task_options())
                    await _watch(session, progress)

                # A terminal event can end the watch before a poll has seen it.
                task = session.task
                if task_id and (task is None or not task.status.is_terminal):
                    task = await engine.fetch_task_state(task_id) or task
            finally:
                await session.close()

            if task is None:
                console.print("[yellow]⚠ The engine did not report a final state.[/yellow]")
                return None
            print_task_summary(task, console)
            return task.status

    final_status = asyncio.run(_run_async())
    if final_status in (TaskStatus.FAILED, None):
        raise typer.Exit(code=1)


async def _watch(session: DownloadSession, progress: ProgressManager) -> None:
    """
    Refreshes the live view until the task is no longer busy.

    Ctrl-C requests cancellation instead of exiting; the loop keeps running
    until the engine reports the terminal status.
    """
    cancel_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    handler_installed = False
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, cancel_requested.set)
        handler_installed = True

    try:
        while session.busy:
            if cancel_requested.is_set():
                cancel_requested.clear()
                try:
                    await session.cancel()
                except AdxBatchError as e:
                    log.debug(f"Cancel request failed: {e}")
            progress.update(session)
            await asyncio.sleep(WATCH_REFRESH_SECONDS)
        progress.update(session)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


@app.command()
def status(
    task_id: str = typer.Argument(..., help="The task id to look up."),
    engine_url: str | None = typer.Option(
        None, "--engine-url", help="Base URL of the worker engine."
    ),
):
    """Show the engine's current state for a task."""
    config = _load_config({"engine_url": engine_url})

    async def _status_async():
        async with HttpTaskEngine(config.engine_url) as engine:
            return await engine.fetch_task_state(task_id)

    task = asyncio.run(_status_async())
    if task is None:
        console.print(f"[red]✗ Task not found: {task_id}[/red]")
        raise typer.Exit(code=1)
    print_task_summary(task, console)


@app.command()
def cancel(
    task_id: str = typer.Argument(..., help="The task id to cancel."),
    engine_url: str | None = typer.Option(
        None, "--engine-url", help="Base URL of the worker engine."
    ),
):
    """Ask the engine to cancel a running task."""
    config = _load_config({"engine_url": engine_url})

    async def _cancel_async():
        async with HttpTaskEngine(config.engine_url) as engine:
            await engine.cancel_task(task_id)

    asyncio.run(_cancel_async())
    console.print(f"[green]✓ Cancel requested for task {task_id}[/green]")

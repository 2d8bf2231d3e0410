"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from music_exporter import __version__
from music_exporter.core import (
    MusicFileExporter,
    detect_content_index,
    select_write_target,
)
from music_exporter.exceptions import MusicExporterError
from music_exporter.models.export import ExportRequest, ExportResult, ExportStatus
from music_exporter.storage.cache import UNBOUNDED, MediaCache
from music_exporter.storage.config_manager import ConfigManager

from .formatters import (
    print_cache_table,
    print_config,
    print_records_table,
    print_validation_table,
)
from .reporter import ConsoleReporter, LoopReporter

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
log = logging.getLogger("music_exporter")

app = typer.Typer(
    name="music-exporter",
    help=(
        "Export cached audio tracks into your public Music folder. Use"
        " 'music-exporter <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "music-exporter"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


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
    """Music Exporter CLI"""
    if version:
        console.print(
            f"[bold]music-exporter[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("music_exporter").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]music-exporter init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        print_config(CONFIG_FILE, config.model_dump(exclude={"config_path"}))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    app_name: str | None = typer.Option(
        None, "--app-name", help="Name of the subfolder created inside Music/."
    ),
    music_dir: str | None = typer.Option(
        None, "--music-dir", help="Path of the public Music folder."
    ),
    content_index: str | None = typer.Option(
        None,
        "--content-index",
        help="Path of the content index database (enables scoped storage).",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write a default configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        key: value
        for key, value in {
            "app_name": app_name,
            "music_dir": music_dir,
            "content_index_path": content_index,
        }.items()
        if value is not None
    }
    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except MusicExporterError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")


@app.command(name="export")
def export_command(
    identifier: str = typer.Argument(..., help="Cache key of the track to export."),
    title: str = typer.Option(..., "--title", "-t", help="Track title."),
    artist: str = typer.Option(..., "--artist", "-a", help="Track artist."),
    mime_type: str = typer.Option(
        "audio/mp4", "--mime-type", "-m", help="MIME type of the cached stream."
    ),
    mode: str | None = typer.Option(
        None,
        "--mode",
        help="Storage mode: auto, scoped (content index) or direct (file path).",
    ),
    verify: bool | None = typer.Option(
        None,
        "--verify/--no-verify",
        help="Check that the exported file is a readable audio file.",
    ),
):
    """Export a cached track into the Music folder."""
    cli_options = {
        key: value
        for key, value in {"storage_mode": mode, "verify_output": verify}.items()
        if value is not None
    }

    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
        cache = MediaCache(config.resolved_cache_dir())
        target = select_write_target(config, detect_content_index(config))
    except MusicExporterError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    request = ExportRequest(
        identifier=identifier, title=title, artist=artist, mime_type=mime_type
    )

    async def _export_async() -> ExportResult:
        loop = asyncio.get_running_loop()
        reporter = LoopReporter(loop, ConsoleReporter(console))
        exporter = MusicFileExporter(config, cache, target, reporter)
        result = await asyncio.to_thread(exporter.export, request)
        await asyncio.sleep(0)
        return result

    result = asyncio.run(_export_async())

    if result.status is ExportStatus.NO_DATA:
        console.print(f"[yellow]⚠️  {escape(result.message)}[/yellow]")
    elif result.status is ExportStatus.FAILED:
        raise typer.Exit(code=1)


@app.command(name="cache-list")
def cache_list():
    """List cached tracks and how much of each can be exported."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
    except MusicExporterError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    cache = MediaCache(config.resolved_cache_dir())
    keys = cache.keys()
    if not keys:
        console.print("[yellow]The media cache is empty.[/yellow]")
        return

    entries = [
        (
            key,
            cache.get_cached_length(key, 0, UNBOUNDED),
            len(cache.get_cached_spans(key)),
        )
        for key in keys
    ]
    print_cache_table(entries)


@app.command()
def exported(
    show_all: bool = typer.Option(
        False,
        "--all",
        help="Include records outside this app's folder and pending ones.",
    ),
):
    """List files exported through the content index."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        index = detect_content_index(config)
    except MusicExporterError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    if index is None:
        console.print(
            "[yellow]No content index is configured; exports are plain files in"
            f" '{Path(config.music_dir) / config.app_name}'.[/yellow]"
        )
        return

    if show_all:
        records = index.list_records(include_pending=True)
    else:
        records = index.list_records(config.relative_path)

    if not records:
        console.print("[yellow]No exported files found.[/yellow]")
        return
    print_records_table(records)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        print_validation_table(config)
    except MusicExporterError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e

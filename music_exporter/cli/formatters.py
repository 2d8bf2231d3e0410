"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from music_exporter.models.config import ExportConfig
from music_exporter.storage.content_index import ContentRecord
from music_exporter.utils.formatting import format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `music-exporter init --force` to write a fresh default config.",
        ],
        "ContentIndexError": [
            "• Check that 'content_index_path' points to a writable location.",
            "• Use `--mode direct` to bypass the content index.",
        ],
        "PermissionError": [
            "• The destination folder is not writable by the current user.",
            "• Set 'music_dir' to a folder you own.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

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
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: ExportConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    index_state = (
        f"[green]{config.content_index_path}[/green]"
        if config.content_index_path
        else "[dim]not available[/dim]"
    )

    table.add_row("Destination:", config.relative_path)
    table.add_row("Music Dir:", config.music_dir)
    table.add_row("Cache Dir:", str(config.resolved_cache_dir()))
    table.add_row("Storage Mode:", config.storage_mode)
    table.add_row("Content Index:", index_state)
    table.add_row("Chunk Size:", format_size(config.chunk_size))
    table.add_row("Verify Output:", "yes" if config.verify_output else "no")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Configuration is valid[/bold green]",
            border_style="green",
            expand=False,
        )
    )


def print_cache_table(entries: list[tuple[str, int, int]]):
    """Displays cached keys with their exportable size and span count."""
    console = Console()
    table = Table(title="Media Cache", box=box.ROUNDED, title_style="bold cyan")
    table.add_column("Key", style="cyan")
    table.add_column("Exportable", justify="right")
    table.add_column("Spans", justify="right", style="dim")

    for key, contiguous, span_count in entries:
        size = (
            format_size(contiguous) if contiguous > 0 else "[yellow]incomplete[/yellow]"
        )
        table.add_row(escape(key), size, str(span_count))

    console.print(table)


def print_records_table(records: list[ContentRecord]):
    """Displays records stored in the content index."""
    console = Console()
    table = Table(title="Exported Files", box=box.ROUNDED, title_style="bold cyan")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Folder")
    table.add_column("Type", style="dim")
    table.add_column("Size", justify="right")

    for record in records:
        name = escape(record.display_name)
        if record.is_pending:
            name += " [yellow](pending)[/yellow]"
        table.add_row(
            str(record.record_id),
            name,
            record.relative_path,
            record.mime_type,
            format_size(record.size),
        )

    console.print(table)

"""
User-facing outcome reporters.

The exporter hands its final message to a reporter and returns immediately;
how and where the message is shown is the reporter's concern.
"""

import asyncio
import logging
from typing import Protocol

from rich.console import Console
from rich.markup import escape

log = logging.getLogger(__name__)


class Reporter(Protocol):
    def report(self, message: str, success: bool) -> None: ...


class ConsoleReporter:
    """Prints outcome messages to a Rich console."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def report(self, message: str, success: bool) -> None:
        if success:
            self.console.print(f"[green]✓ {escape(message)}[/green]")
        else:
            self.console.print(f"[red]✗ {escape(message)}[/red]")


class LoopReporter:
    """
    Posts outcome messages onto an event loop so they are shown from the loop's
    thread, regardless of which thread the export ran on.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, delegate: Reporter):
        self.loop = loop
        self.delegate = delegate

    def report(self, message: str, success: bool) -> None:
        if self.loop.is_closed():
            log.debug(f"Event loop closed, dropping report: {message}")
            return
        self.loop.call_soon_threadsafe(self.delegate.report, message, success)

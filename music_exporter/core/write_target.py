"""
Destinations an export can be written to.

A `WriteTarget` hides whether bytes go through the mediated content index or
straight to a path on disk. The caller picks one target up front with
`select_write_target`; the exporter only ever sees the common interface.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from music_exporter.exceptions import ConfigurationError
from music_exporter.models.config import ExportConfig, to_index_mime_type
from music_exporter.storage.content_index import ContentIndex
from music_exporter.utils.path import create_dir

log = logging.getLogger(__name__)


@dataclass
class Destination:
    """An open output stream and the file it writes to."""

    stream: BinaryIO
    path: Path


class WriteTarget(ABC):
    """Common interface for export destinations."""

    name = "target"

    @abstractmethod
    def open(self, filename: str, mime_type: str) -> Iterator[Destination]:
        """
        Context manager yielding a Destination. The stream is closed on exit;
        if the body raises, any partial output is removed before re-raising.
        """

    @abstractmethod
    def location(self, filename: str) -> str:
        """Human-readable location of an exported file."""


class ContentIndexTarget(WriteTarget):
    """Writes through the content index using a pending record."""

    name = "scoped"

    def __init__(self, index: ContentIndex, relative_path: str):
        self.index = index
        self.relative_path = relative_path

    def location(self, filename: str) -> str:
        return f"{self.relative_path}{filename}"

    @contextmanager
    def open(self, filename: str, mime_type: str) -> Iterator[Destination]:
        existing = self.index.query(filename, self.relative_path)
        if existing is not None:
            log.debug(f"Replacing existing record {existing.uri} for '{filename}'.")
            self.index.delete(existing)
        for stale in self.index.query_pending(filename, self.relative_path):
            log.debug(f"Removing stale pending record {stale.uri} for '{filename}'.")
            self.index.delete(stale)

        record = self.index.insert(
            filename, to_index_mime_type(mime_type), self.relative_path
        )
        try:
            with self.index.open_output_stream(record) as stream:
                yield Destination(stream, self.index.file_path(record))
            self.index.set_pending(record, False)
        except Exception:
            log.debug(f"Removing partial record {record.uri}.")
            self.index.delete(record)
            raise


class DirectFileTarget(WriteTarget):
    """Writes straight to a file inside a public directory."""

    name = "direct"

    def __init__(self, directory: Path):
        self.directory = directory

    def location(self, filename: str) -> str:
        return str(self.directory / filename)

    @contextmanager
    def open(self, filename: str, mime_type: str) -> Iterator[Destination]:
        create_dir(self.directory)
        path = self.directory / filename
        try:
            with open(path, "wb") as stream:
                yield Destination(stream, path)
        except Exception:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.warning(f"Could not remove partial file '{path}': {e}")
            raise


def detect_content_index(config: ExportConfig) -> ContentIndex | None:
    """Returns the host's content index, or None when the host has none."""
    if not config.content_index_path:
        return None
    return ContentIndex(
        Path(config.content_index_path).expanduser(), config.resolved_media_root()
    )


def select_write_target(
    config: ExportConfig, content_index: ContentIndex | None = None
) -> WriteTarget:
    """Chooses the write target once, based on the configured storage mode."""
    mode = config.storage_mode
    if mode == "scoped" or (mode == "auto" and content_index is not None):
        if content_index is None:
            raise ConfigurationError(
                "Scoped storage was requested but no content index is available."
            )
        return ContentIndexTarget(content_index, config.relative_path)

    directory = Path(config.music_dir).expanduser() / config.app_name
    return DirectFileTarget(directory)

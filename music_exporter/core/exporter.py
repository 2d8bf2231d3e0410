"""
Exports a cached track into the public music folder.
"""

import logging
from typing import BinaryIO

from rich.markup import escape

from music_exporter.cli.reporter import Reporter
from music_exporter.core.write_target import WriteTarget
from music_exporter.exceptions import ExportWriteError, FileIntegrityError
from music_exporter.media import FileIntegrityChecker
from music_exporter.models.config import ExportConfig
from music_exporter.models.export import ExportRequest, ExportResult, ExportStatus
from music_exporter.storage.cache import UNBOUNDED, MediaCache
from music_exporter.utils.formatting import format_size
from music_exporter.utils.path import build_filename

log = logging.getLogger(__name__)


class MusicFileExporter:
    """
    Copies the cached bytes of one track to a write target and reports the
    outcome. `export` never raises; every failure becomes a FAILED result.
    """

    def __init__(
        self,
        config: ExportConfig,
        cache: MediaCache,
        target: WriteTarget,
        reporter: Reporter,
    ):
        self.config = config
        self.cache = cache
        self.target = target
        self.reporter = reporter

    def export(self, request: ExportRequest) -> ExportResult:
        """Exports the track described by `request`."""
        filename = ""
        try:
            filename = build_filename(request.artist, request.title, request.mime_type)

            log.debug(
                f"Exporting identifier={request.identifier}, filename={filename}, "
                f"mime_type={request.mime_type}, target={self.target.name}"
            )

            content_length = self.cache.get_cached_length(
                request.identifier, 0, UNBOUNDED
            )
            log.debug(
                f"Cached content length for {request.identifier}: "
                f"{content_length} bytes"
            )

            if content_length <= 0:
                log.warning(f"No cached data found for {request.identifier}")
                return ExportResult(
                    status=ExportStatus.NO_DATA,
                    identifier=request.identifier,
                    filename=filename,
                    message=f"No cached data for '{filename}', nothing to export.",
                )

            with self.target.open(filename, request.mime_type) as destination:
                bytes_written = self.copy_to_stream(
                    request.identifier, destination.stream
                )
                if self.config.verify_output:
                    destination.stream.flush()
                    if not FileIntegrityChecker.check_audio(str(destination.path)):
                        raise FileIntegrityError(
                            "Exported file failed integrity check."
                        )

            location = self.target.location(filename)
            log.info(
                f"[green]✓ Exported[/] '{escape(filename)}' "
                f"({format_size(bytes_written)}) to {self.config.relative_path}"
            )
            result = ExportResult(
                status=ExportStatus.SUCCESS,
                identifier=request.identifier,
                filename=filename,
                location=location,
                bytes_written=bytes_written,
                message=f"Saved to {self.config.relative_path}{filename}",
            )
        except Exception as e:
            log.error(
                f"Failed to export {request.identifier}: {e}",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            result = ExportResult(
                status=ExportStatus.FAILED,
                identifier=request.identifier,
                filename=filename,
                message=f"Export failed: {e}",
            )

        self._notify(result)
        return result

    def copy_to_stream(self, key: str, output: BinaryIO) -> int:
        """Streams every cached byte of `key` into `output`, in order."""
        total_read = 0
        try:
            with self.cache.open_reader(key) as reader:
                log.debug(f"Reading {reader.length} bytes from cache for {key}")
                while chunk := reader.read(self.config.chunk_size):
                    output.write(chunk)
                    total_read += len(chunk)
        except OSError as e:
            raise ExportWriteError(
                f"Copy of '{key}' failed after {total_read} bytes: {e}"
            ) from e
        log.debug(f"Wrote {total_read} bytes to output")
        return total_read

    def _notify(self, result: ExportResult) -> None:
        try:
            self.reporter.report(result.message, result.ok)
        except Exception as e:
            log.warning(f"Reporter failed to deliver '{result.message}': {e}")

"""
A SQLite-backed content index that mediates all writes into the public media
folders. Files are addressed through records rather than raw paths.
"""

import logging
import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import BinaryIO

from music_exporter.exceptions import ContentIndexError

log = logging.getLogger(__name__)

CONTENT_URI = "content://media/external/audio/media"

_COLUMNS = "_id, display_name, mime_type, relative_path, is_pending, size, date_added"


@dataclass(frozen=True)
class ContentRecord:
    """A single file record in the content index."""

    record_id: int
    display_name: str
    mime_type: str
    relative_path: str
    is_pending: bool = False
    size: int = 0
    date_added: str = ""

    @property
    def uri(self) -> str:
        return f"{CONTENT_URI}/{self.record_id}"


def normalize_relative_path(relative_path: str) -> str:
    """Normalizes 'Music/App' and '/Music/App/' to 'Music/App/'."""
    return relative_path.replace("\\", "/").strip("/") + "/"


class ContentIndex:
    """
    Stores file records in SQLite and their bytes under a media root directory.
    Pending records keep their data in a hidden '.pending-' file until published.
    """

    def __init__(self, db_path: Path, media_root: Path):
        self.db_path = db_path
        self.media_root = media_root
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Gets a new database connection with optimized PRAGMA settings."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            return conn
        except sqlite3.Error as e:
            log.error(f"Failed to connect to content index: {e}")
            raise

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_connection()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _initialize_db(self) -> None:
        """Creates the records table and its lookup index if they don't exist."""
        try:
            with self._connection() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS audio_media (
                        _id INTEGER PRIMARY KEY AUTOINCREMENT,
                        display_name TEXT NOT NULL,
                        mime_type TEXT,
                        relative_path TEXT NOT NULL,
                        is_pending INTEGER NOT NULL DEFAULT 0,
                        size INTEGER NOT NULL DEFAULT 0,
                        date_added TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_location ON"
                    " audio_media(relative_path, display_name);"
                )
        except sqlite3.Error as e:
            raise ContentIndexError(
                f"Failed to initialize content index at '{self.db_path}': {e}"
            ) from e

    @staticmethod
    def _to_record(row: tuple) -> ContentRecord:
        return ContentRecord(
            record_id=row[0],
            display_name=row[1],
            mime_type=row[2] or "",
            relative_path=row[3],
            is_pending=bool(row[4]),
            size=row[5],
            date_added=str(row[6] or ""),
        )

    def file_path(self, record: ContentRecord) -> Path:
        """Returns the backing file of a record."""
        directory = self.media_root / record.relative_path
        if record.is_pending:
            return directory / f".pending-{record.record_id}-{record.display_name}"
        return directory / record.display_name

    def insert(
        self,
        display_name: str,
        mime_type: str,
        relative_path: str,
        is_pending: bool = True,
    ) -> ContentRecord:
        """Creates a new record. Raises ContentIndexError if no record is created."""
        relative_path = normalize_relative_path(relative_path)
        try:
            with self._connection() as conn:
                cursor = conn.execute(
                    "INSERT INTO audio_media "
                    "(display_name, mime_type, relative_path, is_pending) "
                    "VALUES (?, ?, ?, ?)",
                    (display_name, mime_type, relative_path, int(is_pending)),
                )
                record_id = cursor.lastrowid
        except sqlite3.Error as e:
            raise ContentIndexError(f"Content index insert failed: {e}") from e

        record = self.get(record_id)
        if record is None:
            raise ContentIndexError("Content index insert returned no record.")
        log.debug(f"Inserted {record.uri} for '{relative_path}{display_name}'.")
        return record

    def get(self, record_id: int) -> ContentRecord | None:
        """Fetches a record by id, pending or not."""
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM audio_media WHERE _id = ?",  # noqa: S608
                (record_id,),
            ).fetchone()
        return self._to_record(row) if row else None

    def query(self, display_name: str, relative_path: str) -> ContentRecord | None:
        """Finds a published record by display name within a relative path."""
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM audio_media "  # noqa: S608
                "WHERE display_name = ? AND relative_path = ? AND is_pending = 0 "
                "ORDER BY _id LIMIT 1",
                (display_name, normalize_relative_path(relative_path)),
            ).fetchone()
        return self._to_record(row) if row else None

    def query_pending(
        self, display_name: str, relative_path: str
    ) -> list[ContentRecord]:
        """Finds pending records by display name within a relative path."""
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM audio_media "  # noqa: S608
                "WHERE display_name = ? AND relative_path = ? AND is_pending = 1 "
                "ORDER BY _id",
                (display_name, normalize_relative_path(relative_path)),
            ).fetchall()
        return [self._to_record(row) for row in rows]

    def list_records(
        self, relative_path: str | None = None, include_pending: bool = False
    ) -> list[ContentRecord]:
        """Lists records, optionally limited to one relative path."""
        clauses, params = [], []
        if relative_path is not None:
            clauses.append("relative_path = ?")
            params.append(normalize_relative_path(relative_path))
        if not include_pending:
            clauses.append("is_pending = 0")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM audio_media{where} ORDER BY _id",  # noqa: S608
                params,
            ).fetchall()
        return [self._to_record(row) for row in rows]

    def delete(self, record: ContentRecord) -> bool:
        """Removes a record and its backing file."""
        current = self.get(record.record_id) or record
        try:
            self.file_path(current).unlink(missing_ok=True)
        except OSError as e:
            log.warning(f"Failed to remove backing file for {record.uri}: {e}")
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM audio_media WHERE _id = ?", (record.record_id,)
            )
        deleted = cursor.rowcount > 0
        if deleted:
            log.debug(f"Deleted {record.uri} ('{record.display_name}').")
        return deleted

    def open_output_stream(self, record: ContentRecord) -> BinaryIO:
        """Opens a truncating binary write stream to the record's backing file."""
        current = self.get(record.record_id)
        if current is None:
            raise ContentIndexError(f"Failed to open output stream for {record.uri}")
        path = self.file_path(current)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return open(path, "wb")  # noqa: SIM115
        except OSError as e:
            raise ContentIndexError(
                f"Failed to open output stream for {record.uri}: {e}"
            ) from e

    def set_pending(self, record: ContentRecord, pending: bool) -> ContentRecord:
        """
        Sets or clears the pending flag, moving the backing file between its
        hidden and published names.
        """
        current = self.get(record.record_id)
        if current is None:
            raise ContentIndexError(f"Record {record.uri} no longer exists.")
        if current.is_pending == pending:
            return current

        source = self.file_path(current)
        target = self.file_path(replace(current, is_pending=pending))
        size = source.stat().st_size if source.exists() else 0

        # Row first, so the file always sits where the row points.
        self._update_pending(current.record_id, pending, size)
        if source.exists():
            try:
                os.replace(source, target)
            except OSError:
                self._update_pending(current.record_id, current.is_pending, current.size)
                raise
        return self.get(current.record_id)

    def _update_pending(self, record_id: int, pending: bool, size: int) -> None:
        with self._connection() as conn:
            conn.execute(
                "UPDATE audio_media SET is_pending = ?, size = ? WHERE _id = ?",
                (int(pending), size, record_id),
            )

"""
A file-based media cache that stores downloaded byte ranges ("spans") per key.
Each span is a file named after its start position inside a per-key directory.
"""

import hashlib
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

log = logging.getLogger(__name__)

UNBOUNDED = sys.maxsize

_KEY_FILE = "key.txt"
_SPAN_SUFFIX = ".span"


@dataclass(frozen=True)
class CacheSpan:
    """A contiguous cached byte range backed by a single file."""

    position: int
    length: int
    file: Path

    @property
    def end(self) -> int:
        return self.position + self.length


class CacheReader:
    """
    Sequential reader over a list of spans. Only one backing file is open at a
    time, and it is closed when the reader is exhausted or closed.
    """

    def __init__(self, segments: list[tuple[Path, int, int]]):
        # Each segment is (file, offset into file, bytes to read).
        self._segments = list(segments)
        self._current: BinaryIO | None = None
        self._remaining = 0
        self.closed = False

    @property
    def length(self) -> int:
        return sum(size for _, _, size in self._segments)

    def _advance(self) -> bool:
        self._close_current()
        if not self._segments:
            return False
        path, offset, size = self._segments.pop(0)
        self._current = open(path, "rb")  # noqa: SIM115
        self._current.seek(offset)
        self._remaining = size
        return True

    def _close_current(self) -> None:
        if self._current is not None:
            self._current.close()
            self._current = None

    def read(self, size: int = -1) -> bytes:
        """Reads up to `size` bytes, or everything left if `size` is negative."""
        if self.closed:
            raise ValueError("I/O operation on closed cache reader.")
        if size == 0:
            return b""
        if size < 0:
            chunks = []
            while chunk := self.read(1024 * 1024):
                chunks.append(chunk)
            return b"".join(chunks)

        while self._remaining == 0:
            if not self._advance():
                return b""

        data = self._current.read(min(size, self._remaining))
        if not data:
            raise OSError("Cache span file ended before its recorded length.")
        self._remaining -= len(data)
        return data

    def close(self) -> None:
        self._close_current()
        self._segments.clear()
        self.closed = True

    def __enter__(self) -> "CacheReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class MediaCache:
    """
    Stores and serves cached media bytes keyed by content identifier.
    """

    def __init__(self, cache_dir_path: Path):
        self.cache_dir = cache_dir_path
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _get_key_dir(self, key: str) -> Path:
        """Generates a safe directory name for a given cache key."""
        hashed_key = hashlib.md5(key.encode("utf-8")).hexdigest()  # noqa: S324
        return self.cache_dir / hashed_key

    def get_cached_spans(self, key: str) -> list[CacheSpan]:
        """Returns all spans stored for `key`, sorted by position."""
        key_dir = self._get_key_dir(key)
        if not key_dir.is_dir():
            return []

        spans = []
        for span_file in key_dir.glob(f"*{_SPAN_SUFFIX}"):
            try:
                position = int(span_file.stem)
                length = span_file.stat().st_size
            except (ValueError, OSError) as e:
                log.debug(f"Ignoring unreadable span '{span_file.name}': {e}")
                continue
            if length > 0:
                spans.append(CacheSpan(position, length, span_file))
        spans.sort(key=lambda s: s.position)
        return spans

    def get_cached_length(self, key: str, position: int, length: int) -> int:
        """
        Returns the number of contiguous cached bytes from `position`, capped at
        `length`. If `position` itself is not cached, returns the negated number
        of bytes until the next cached span (or until `length`).
        """
        end = position + length if length < UNBOUNDED - position else UNBOUNDED
        spans = self.get_cached_spans(key)

        cursor = position
        for span in spans:
            if span.end <= cursor:
                continue
            if span.position > cursor:
                break
            cursor = span.end
            if cursor >= end:
                break

        if cursor > position:
            return min(cursor, end) - position

        next_start = next((s.position for s in spans if s.position > position), end)
        return -(min(next_start, end) - position)

    def open_reader(self, key: str) -> CacheReader:
        """
        Opens a sequential reader over the contiguous cached region that starts
        at position 0. Reading stops at the first gap.
        """
        segments = []
        cursor = 0
        for span in self.get_cached_spans(key):
            if span.end <= cursor:
                continue
            if span.position > cursor:
                break
            offset = cursor - span.position
            segments.append((span.file, offset, span.length - offset))
            cursor = span.end
        log.debug(f"Opened cache reader for '{key}' over {cursor} bytes.")
        return CacheReader(segments)

    def write_span(self, key: str, position: int, data: bytes) -> CacheSpan:
        """Stores `data` as a span of `key` starting at `position`."""
        if position < 0:
            raise ValueError("Span position cannot be negative.")
        key_dir = self._get_key_dir(key)
        key_dir.mkdir(parents=True, exist_ok=True)
        (key_dir / _KEY_FILE).write_text(key, encoding="utf-8")

        span_path = key_dir / f"{position}{_SPAN_SUFFIX}"
        temp_path = span_path.with_suffix(".tmp")
        with open(temp_path, "wb") as f:
            f.write(data)
        os.replace(temp_path, span_path)
        return CacheSpan(position, len(data), span_path)

    def keys(self) -> list[str]:
        """Lists the original keys of every cached entry."""
        found = []
        for key_file in self.cache_dir.glob(f"*/{_KEY_FILE}"):
            try:
                found.append(key_file.read_text(encoding="utf-8"))
            except OSError as e:
                log.warning(f"Failed to read cache key file {key_file}: {e}")
        return sorted(found)

    def remove(self, key: str) -> bool:
        """Removes every span stored for `key`."""
        key_dir = self._get_key_dir(key)
        if not key_dir.is_dir():
            return False
        try:
            for entry in key_dir.iterdir():
                entry.unlink()
            key_dir.rmdir()
            return True
        except OSError as e:
            log.error(f"Failed to remove cache entry '{key}': {e}")
            return False

    def clear(self) -> bool:
        """Removes all items from the cache."""
        log.info("Clearing all cache entries...")
        results = [self.remove(key) for key in self.keys()]
        return all(results)

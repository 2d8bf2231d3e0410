from pathlib import Path

import pytest

from music_exporter.models.config import ExportConfig
from music_exporter.storage.cache import MediaCache
from music_exporter.storage.content_index import ContentIndex


class RecordingReporter:
    def __init__(self):
        self.messages: list[tuple[str, bool]] = []

    def report(self, message: str, success: bool) -> None:
        self.messages.append((message, success))


@pytest.fixture
def make_config(tmp_path: Path):
    def _make(**overrides) -> ExportConfig:
        values = {
            "app_name": "TestApp",
            "music_dir": str(tmp_path / "storage" / "Music"),
            "cache_dir": str(tmp_path / "cache"),
            "chunk_size": 1024,
            "config_path": str(tmp_path / "config"),
        }
        values.update(overrides)
        return ExportConfig(**values)

    return _make


@pytest.fixture
def cache(tmp_path: Path) -> MediaCache:
    return MediaCache(tmp_path / "cache")


@pytest.fixture
def index(tmp_path: Path) -> ContentIndex:
    return ContentIndex(tmp_path / "index" / "media.sqlite", tmp_path / "storage")


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()

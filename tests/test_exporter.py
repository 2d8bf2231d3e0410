import asyncio
import io
import os
import sqlite3
import threading
import wave
from contextlib import contextmanager

import pytest

from music_exporter.cli.reporter import LoopReporter
from music_exporter.core import (
    ContentIndexTarget,
    DirectFileTarget,
    MusicFileExporter,
    select_write_target,
)
from music_exporter.exceptions import ConfigurationError, ContentIndexError
from music_exporter.media import FileIntegrityChecker
from music_exporter.models.export import ExportRequest, ExportStatus
from music_exporter.storage.cache import CacheReader

AUDIO = os.urandom(5000)


class FailingReader(CacheReader):
    """Yields one chunk, then fails like a truncated span file."""

    def __init__(self):
        super().__init__([])
        self.calls = 0

    def read(self, size=-1):
        self.calls += 1
        if self.calls == 1:
            return b"x" * 10
        raise OSError("disk read error")


class UpdateFailingConnection:
    """Passes statements through to sqlite, except UPDATEs, which fail."""

    def __init__(self, conn):
        self._conn = conn

    def execute(self, sql, params=()):
        if sql.lstrip().startswith("UPDATE"):
            raise sqlite3.OperationalError("database is locked")
        return self._conn.execute(sql, params)


def make_wav(seconds=1, rate=8000):
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x00\x00" * rate * seconds)
    return buffer.getvalue()


def test_direct_export_copies_cached_bytes(make_config, cache, reporter, tmp_path):
    config = make_config(storage_mode="direct")
    cache.write_span("song-1", 0, AUDIO[:3000])
    cache.write_span("song-1", 3000, AUDIO[3000:])
    target = select_write_target(config)
    exporter = MusicFileExporter(config, cache, target, reporter)

    result = exporter.export(ExportRequest("song-1", "Title", "Artist", "audio/mpeg"))

    output = tmp_path / "storage" / "Music" / "TestApp" / "Artist - Title.mp3"
    assert result.status is ExportStatus.SUCCESS
    assert result.bytes_written == len(AUDIO)
    assert result.location == str(output)
    assert output.read_bytes() == AUDIO
    assert reporter.messages == [("Saved to Music/TestApp/Artist - Title.mp3", True)]


def test_no_cached_data_creates_nothing(make_config, cache, reporter, tmp_path):
    config = make_config(storage_mode="direct")
    exporter = MusicFileExporter(config, cache, select_write_target(config), reporter)

    result = exporter.export(ExportRequest("missing", "Title", "Artist"))

    assert result.status is ExportStatus.NO_DATA
    assert not (tmp_path / "storage" / "Music" / "TestApp").exists()
    assert reporter.messages == []


def test_scoped_export_publishes_record(make_config, cache, index, reporter):
    config = make_config()
    cache.write_span("song-1", 0, AUDIO)
    target = select_write_target(config, index)
    assert isinstance(target, ContentIndexTarget)
    exporter = MusicFileExporter(config, cache, target, reporter)

    result = exporter.export(ExportRequest("song-1", "Title", "Artist", "audio/webm"))

    assert result.ok
    record = index.query("Artist - Title.webm", "Music/TestApp/")
    assert record is not None
    assert record.mime_type == "audio/ogg"
    assert record.size == len(AUDIO)
    assert index.file_path(record).read_bytes() == AUDIO
    assert result.location == "Music/TestApp/Artist - Title.webm"


def test_scoped_reexport_overwrites(make_config, cache, index, reporter):
    config = make_config()
    exporter = MusicFileExporter(
        config, cache, select_write_target(config, index), reporter
    )
    request = ExportRequest("song-1", "Title", "Artist")

    cache.write_span("song-1", 0, b"old bytes")
    exporter.export(request)
    cache.write_span("song-1", 0, b"new bytes, longer")
    exporter.export(request)

    records = index.list_records(include_pending=True)
    assert len(records) == 1
    assert index.file_path(records[0]).read_bytes() == b"new bytes, longer"


def test_direct_reexport_overwrites(make_config, cache, reporter, tmp_path):
    config = make_config(storage_mode="direct")
    exporter = MusicFileExporter(config, cache, select_write_target(config), reporter)
    request = ExportRequest("song-1", "Title", "Artist")

    cache.write_span("song-1", 0, b"a much longer first version")
    exporter.export(request)
    cache.write_span("song-1", 0, b"short")
    exporter.export(request)

    folder = tmp_path / "storage" / "Music" / "TestApp"
    assert [p.name for p in folder.iterdir()] == ["Artist - Title.m4a"]
    assert (folder / "Artist - Title.m4a").read_bytes() == b"short"


def test_mid_write_failure_removes_partial_record(
    make_config, cache, index, reporter, monkeypatch
):
    config = make_config()
    cache.write_span("song-1", 0, AUDIO)
    monkeypatch.setattr(cache, "open_reader", lambda key: FailingReader())
    exporter = MusicFileExporter(
        config, cache, select_write_target(config, index), reporter
    )

    result = exporter.export(ExportRequest("song-1", "Title", "Artist"))

    assert result.status is ExportStatus.FAILED
    assert index.list_records(include_pending=True) == []
    folder = index.media_root / "Music" / "TestApp"
    assert not folder.exists() or list(folder.iterdir()) == []
    message, success = reporter.messages[0]
    assert success is False
    assert message.startswith("Export failed:")


def test_failed_reexport_leaves_no_record(
    make_config, cache, index, reporter, monkeypatch
):
    config = make_config()
    exporter = MusicFileExporter(
        config, cache, select_write_target(config, index), reporter
    )
    cache.write_span("song-1", 0, b"first")
    exporter.export(ExportRequest("song-1", "Title", "Artist"))

    monkeypatch.setattr(cache, "open_reader", lambda key: FailingReader())
    result = exporter.export(ExportRequest("song-1", "Title", "Artist"))

    # The old record is replaced before writing, so nothing remains.
    assert result.status is ExportStatus.FAILED
    assert index.list_records(include_pending=True) == []


def test_failed_publish_leaves_no_output(
    make_config, cache, index, reporter, monkeypatch
):
    config = make_config()
    cache.write_span("song-1", 0, AUDIO)
    original_connection = index._connection

    @contextmanager
    def connection():
        with original_connection() as conn:
            yield UpdateFailingConnection(conn)

    monkeypatch.setattr(index, "_connection", connection)
    exporter = MusicFileExporter(
        config, cache, select_write_target(config, index), reporter
    )

    result = exporter.export(ExportRequest("song-1", "Title", "Artist"))

    assert result.status is ExportStatus.FAILED
    assert "database is locked" in result.message
    assert index.list_records(include_pending=True) == []
    folder = index.media_root / "Music" / "TestApp"
    assert not folder.exists() or list(folder.iterdir()) == []


def test_stale_pending_record_is_replaced(make_config, cache, index, reporter):
    config = make_config()
    stale = index.insert("Artist - Title.m4a", "audio/mp4", "Music/TestApp/")
    with index.open_output_stream(stale) as stream:
        stream.write(b"left over from a crashed run")
    cache.write_span("song-1", 0, AUDIO)
    exporter = MusicFileExporter(
        config, cache, select_write_target(config, index), reporter
    )

    result = exporter.export(ExportRequest("song-1", "Title", "Artist"))

    assert result.ok
    records = index.list_records(include_pending=True)
    assert len(records) == 1
    assert not records[0].is_pending
    assert records[0].record_id != stale.record_id
    folder = index.media_root / "Music" / "TestApp"
    assert [p.name for p in folder.iterdir()] == ["Artist - Title.m4a"]
    assert (folder / "Artist - Title.m4a").read_bytes() == AUDIO


def test_direct_failure_removes_partial_file(
    make_config, cache, reporter, monkeypatch, tmp_path
):
    config = make_config(storage_mode="direct")
    cache.write_span("song-1", 0, AUDIO)
    monkeypatch.setattr(cache, "open_reader", lambda key: FailingReader())
    exporter = MusicFileExporter(config, cache, select_write_target(config), reporter)

    result = exporter.export(ExportRequest("song-1", "Title", "Artist"))

    assert result.status is ExportStatus.FAILED
    folder = tmp_path / "storage" / "Music" / "TestApp"
    assert list(folder.iterdir()) == []


def test_insert_failure_is_reported(make_config, cache, index, reporter, monkeypatch):
    config = make_config()
    cache.write_span("song-1", 0, AUDIO)

    def broken_insert(*args, **kwargs):
        raise ContentIndexError("Content index insert returned no record.")

    monkeypatch.setattr(index, "insert", broken_insert)
    exporter = MusicFileExporter(
        config, cache, select_write_target(config, index), reporter
    )

    result = exporter.export(ExportRequest("song-1", "Title", "Artist"))

    assert result.status is ExportStatus.FAILED
    assert "insert returned no record" in result.message
    assert reporter.messages == [(result.message, False)]


def test_verify_rejects_non_audio(make_config, cache, reporter, tmp_path):
    config = make_config(storage_mode="direct", verify_output=True)
    cache.write_span("song-1", 0, b"\x00" * 4096)
    exporter = MusicFileExporter(config, cache, select_write_target(config), reporter)

    result = exporter.export(ExportRequest("song-1", "Title", "Artist"))

    assert result.status is ExportStatus.FAILED
    assert "integrity" in result.message
    assert not (tmp_path / "storage" / "Music" / "TestApp" / "Artist - Title.m4a").exists()


def test_verify_accepts_audio_written_through_index(
    make_config, cache, index, reporter, monkeypatch
):
    config = make_config(verify_output=True)
    audio = make_wav()
    cache.write_span("song-1", 0, audio)
    checked = []
    check_audio = FileIntegrityChecker.check_audio

    def recording_check(filepath):
        checked.append(filepath)
        return check_audio(filepath)

    monkeypatch.setattr(
        FileIntegrityChecker, "check_audio", staticmethod(recording_check)
    )
    exporter = MusicFileExporter(
        config, cache, select_write_target(config, index), reporter
    )

    result = exporter.export(ExportRequest("song-1", "Title", "Artist", "audio/wav"))

    assert result.ok, result.message
    assert len(checked) == 1
    assert os.path.basename(checked[0]).startswith(".pending-")
    record = index.query("Artist - Title.m4a", "Music/TestApp/")
    assert record is not None
    assert index.file_path(record).read_bytes() == audio


def test_reporter_errors_do_not_escape(make_config, cache):
    class BrokenReporter:
        def report(self, message, success):
            raise RuntimeError("no display")

    config = make_config(storage_mode="direct")
    cache.write_span("song-1", 0, AUDIO)
    exporter = MusicFileExporter(
        config, cache, select_write_target(config), BrokenReporter()
    )

    result = exporter.export(ExportRequest("song-1", "Title", "Artist"))

    assert result.ok


def test_select_write_target(make_config, index):
    assert isinstance(select_write_target(make_config()), DirectFileTarget)
    assert isinstance(select_write_target(make_config(), index), ContentIndexTarget)
    assert isinstance(
        select_write_target(make_config(storage_mode="direct"), index),
        DirectFileTarget,
    )


def test_scoped_mode_without_index_is_rejected(make_config, tmp_path):
    config = make_config(
        storage_mode="scoped", content_index_path=str(tmp_path / "media.sqlite")
    )

    with pytest.raises(ConfigurationError):
        select_write_target(config, None)


def test_loop_reporter_delivers_on_loop_thread(make_config, cache, reporter):
    config = make_config(storage_mode="direct")
    cache.write_span("song-1", 0, AUDIO)
    delivered_on = []

    class ThreadRecordingReporter:
        def report(self, message, success):
            delivered_on.append(threading.get_ident())
            reporter.report(message, success)

    async def run():
        loop = asyncio.get_running_loop()
        exporter = MusicFileExporter(
            config,
            cache,
            select_write_target(config),
            LoopReporter(loop, ThreadRecordingReporter()),
        )
        result = await asyncio.to_thread(
            exporter.export, ExportRequest("song-1", "Title", "Artist")
        )
        await asyncio.sleep(0)
        return result

    result = asyncio.run(run())

    assert result.ok
    assert delivered_on == [threading.get_ident()]
    assert reporter.messages == [(result.message, True)]

"""
Contract tests for CSV session logs.

- Header row, then one row per event
- File naming for global and per-session streams
- Write failures are reported, never raised, and never stop playback
"""

import csv
import os
import re
import time
from datetime import timedelta

import pytest

from audio_server.broadcast_core.play_item import AudioRef, Pause
from audio_server.broadcast_core.playback_engine import EngineState, PlaybackEngine
from audio_server.broadcast_core.playback_worker import PlaybackWorker
from audio_server.state.session_log import (
    CSV_HEADER,
    STATUS_ERROR,
    LogEvent,
    SessionLogger,
)
from audio_server.tests.contracts.test_doubles import (
    OutputFactory,
    RecordingOutput,
    make_asset_store,
)

GLOBAL_NAME = re.compile(r"log_\d{8}-\d{6}\.csv")
SESSION_NAME = re.compile(r"log_random_\d{8}-\d{6}-\d{3}(-\d+)?\.csv")


def read_rows(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


class TestFormat:
    """CSV layout."""

    def test_header_then_events(self, session_logger):
        session = session_logger.global_session()
        assert session_logger.log_event(session, LogEvent(123, "a.wav", "success", "999"))
        assert session_logger.log_event(session, LogEvent(456, "pause_10ms"))

        rows = read_rows(session.path)
        assert rows == [
            CSV_HEADER,
            ["123", "a.wav", "success", "999"],
            ["456", "pause_10ms", "success", ""],
        ]

    def test_header_columns(self):
        assert CSV_HEADER == ["timestamp_audio", "audio_filename", "status", "timestamp_client"]

    def test_labels_with_commas_are_quoted(self, session_logger):
        session = session_logger.global_session()
        session_logger.log_event(session, LogEvent(1, "song, live.wav", STATUS_ERROR))
        assert read_rows(session.path)[1] == ["1", "song, live.wav", "error", ""]


class TestNaming:
    """File names and session identity."""

    def test_global_log_name(self, session_logger):
        session = session_logger.start_new_log()
        assert GLOBAL_NAME.fullmatch(os.path.basename(session.path))
        assert session.kind == "global"

    def test_global_session_is_reused(self, session_logger):
        assert session_logger.global_session() is session_logger.global_session()

    def test_per_session_names_are_unique(self, session_logger):
        sessions = [session_logger.start_session("random") for _ in range(5)]
        paths = [s.path for s in sessions]

        assert len(set(paths)) == 5
        for path in paths:
            assert SESSION_NAME.fullmatch(os.path.basename(path))
            assert read_rows(path) == [CSV_HEADER]

    def test_invalid_kinds_are_refused(self, session_logger):
        with pytest.raises(ValueError):
            session_logger.start_session("global")
        with pytest.raises(ValueError):
            session_logger.start_session("podcast")


class TestClosedSessions:
    """Closed sessions and global log rotation."""

    def test_closed_session_drops_events(self, session_logger):
        session = session_logger.start_session("playlist")
        session_logger.close_session(session)

        assert session_logger.log_event(session, LogEvent(1, "a.wav")) is False
        assert read_rows(session.path) == [CSV_HEADER]

    def test_start_new_log_swaps_the_global_session(self, session_logger, monkeypatch):
        first = session_logger.start_new_log()
        # Force a different second-resolution name
        monkeypatch.setattr(
            session_logger, "_now", lambda: first.start_time + timedelta(seconds=5)
        )
        second = session_logger.start_new_log()

        assert second.path != first.path
        assert session_logger.global_session() is second

    def test_stale_global_session_writes_to_current_log(self, session_logger, monkeypatch):
        """An event for an older global session lands in the current global log."""
        first = session_logger.start_new_log()
        monkeypatch.setattr(
            session_logger, "_now", lambda: first.start_time + timedelta(seconds=5)
        )
        second = session_logger.start_new_log()

        assert session_logger.log_event(first, LogEvent(7, "a.wav", "success", "55"))
        assert read_rows(first.path) == [CSV_HEADER]
        assert read_rows(second.path) == [CSV_HEADER, ["7", "a.wav", "success", "55"]]

    def test_new_log_during_playback_keeps_the_row(self, session_logger, monkeypatch):
        """/startnewlog while a single play is sounding: its row still reaches a log."""
        assets = make_asset_store({"a.wav": 300})
        engine = PlaybackEngine(assets, OutputFactory(RecordingOutput(realtime=True)), session_logger)
        worker = PlaybackWorker(engine)
        worker.start()
        try:
            first = session_logger.global_session()
            job = worker.submit([AudioRef("a.wav")], first, "123")
            time.sleep(0.1)
            monkeypatch.setattr(
                session_logger, "_now", lambda: first.start_time + timedelta(seconds=5)
            )
            second = session_logger.start_new_log()
            result = job.wait(timeout=5.0)
        finally:
            worker.stop(timeout=5.0)

        assert result is not None and result.ok
        assert second.path != first.path
        rows = read_rows(first.path)[1:] + read_rows(second.path)[1:]
        assert [row[1:] for row in rows] == [["a.wav", "success", "123"]]


class TestWriteFailures:
    """Unwritable logs never interrupt playback."""

    def test_unwritable_log_dir_reports_failure(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("occupied")
        logger = SessionLogger(str(blocker))

        session = logger.start_session("random")

        assert logger.log_event(session, LogEvent(1, "a.wav")) is False

    def test_playback_completes_when_log_write_fails(self, tmp_path, asset_store):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("occupied")
        logger = SessionLogger(str(blocker))
        output = RecordingOutput(realtime=False)
        engine = PlaybackEngine(asset_store, OutputFactory(output), logger)

        result = engine.run([AudioRef("a.wav"), Pause(5), AudioRef("b.wav")], logger.global_session())

        assert result.state == EngineState.COMPLETED
        assert output.played == ["a.wav", "b.wav"]
        assert len(result.events) == 3

"""
Contract tests for the PlaybackWorker.

- Concurrent submissions never overlap on the output
- Jobs run in submission order
- Submitting to a stopped worker fails
"""

import threading
import time

import pytest

from audio_server.broadcast_core.play_item import AudioRef
from audio_server.broadcast_core.playback_engine import EngineState, PlaybackEngine
from audio_server.broadcast_core.playback_worker import PlaybackWorker
from audio_server.tests.contracts.test_doubles import (
    ConcurrencyProbeOutput,
    OutputFactory,
    RecordingOutput,
    make_asset_store,
)


@pytest.fixture
def worker_factory(asset_store, session_logger):
    workers = []

    def _make(output):
        engine = PlaybackEngine(asset_store, OutputFactory(output), session_logger)
        worker = PlaybackWorker(engine)
        worker.start()
        workers.append(worker)
        return worker

    yield _make
    for worker in workers:
        worker.stop(timeout=5.0)


class TestSinglePlaybackSlot:
    """At most one session is audible at a time."""

    def test_concurrent_requests_do_not_overlap(self, worker_factory, session_logger):
        output = ConcurrencyProbeOutput(play_seconds=0.05)
        worker = worker_factory(output)
        session = session_logger.global_session()
        results = []
        results_lock = threading.Lock()

        def request(name):
            result = worker.play([AudioRef(name)], session)
            with results_lock:
                results.append(result)

        threads = [threading.Thread(target=request, args=(n,)) for n in ["a.wav", "b.wav", "c.wav", "d.wav"]]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10.0)

        assert len(results) == 4
        assert all(r.state == EngineState.COMPLETED for r in results)
        assert output.max_active == 1
        assert sorted(output.played) == ["a.wav", "b.wav", "c.wav", "d.wav"]

    def test_jobs_run_in_submission_order(self, worker_factory, session_logger):
        output = RecordingOutput(realtime=False)
        worker = worker_factory(output)
        session = session_logger.global_session()

        jobs = [worker.submit([AudioRef(name)], session) for name in ["e.wav", "a.wav", "c.wav"]]
        for job in jobs:
            assert job.wait(timeout=5.0) is not None

        assert output.played == ["e.wav", "a.wav", "c.wav"]
        assert all(job.done for job in jobs)


class TestLifecycle:
    """Start/stop behaviour."""

    def test_submit_after_stop_fails(self, asset_store, session_logger):
        engine = PlaybackEngine(asset_store, OutputFactory(RecordingOutput(realtime=False)), session_logger)
        worker = PlaybackWorker(engine)
        worker.start()
        assert worker.running
        worker.stop(timeout=5.0)

        assert not worker.running
        with pytest.raises(RuntimeError):
            worker.submit([AudioRef("a.wav")], session_logger.global_session())

    def test_submit_before_start_fails(self, asset_store, session_logger):
        engine = PlaybackEngine(asset_store, OutputFactory(RecordingOutput(realtime=False)), session_logger)
        worker = PlaybackWorker(engine)
        with pytest.raises(RuntimeError):
            worker.submit([AudioRef("a.wav")], session_logger.global_session())

    def test_queued_jobs_finish_before_stop_returns(self, asset_store, session_logger):
        output = RecordingOutput(realtime=True)
        engine = PlaybackEngine(asset_store, OutputFactory(output), session_logger)
        worker = PlaybackWorker(engine)
        worker.start()
        session = session_logger.global_session()
        jobs = [worker.submit([AudioRef(name)], session) for name in ["a.wav", "b.wav"]]

        worker.stop(timeout=5.0)

        assert all(job.done for job in jobs)
        assert output.played == ["a.wav", "b.wav"]

    def test_restart_while_draining_is_refused(self, session_logger):
        """start() after a timed-out stop() fails loudly, then works once the thread exits."""
        assets = make_asset_store({"long.wav": 300})
        output = RecordingOutput(realtime=True)
        engine = PlaybackEngine(assets, OutputFactory(output), session_logger)
        worker = PlaybackWorker(engine)
        worker.start()
        session = session_logger.global_session()
        job = worker.submit([AudioRef("long.wav")], session)

        worker.stop(timeout=0.01)
        assert worker.running
        with pytest.raises(RuntimeError):
            worker.start()

        assert job.wait(timeout=5.0) is not None
        deadline = time.monotonic() + 5.0
        while worker.running and time.monotonic() < deadline:
            time.sleep(0.01)

        worker.start()
        try:
            result = worker.play([AudioRef("long.wav")], session)
        finally:
            worker.stop(timeout=5.0)
        assert result.ok
        assert output.played == ["long.wav", "long.wav"]

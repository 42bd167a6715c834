"""
Playback worker: the single playback slot.

HTTP handler threads submit jobs and wait for them; one dedicated thread runs
them through the PlaybackEngine in FIFO order. Only this thread ever touches
the engine, so at most one session is audible at any time and no lock is held
across a blocking play.
"""

import logging
import queue
import threading
from typing import Optional, Sequence

from audio_server.broadcast_core.play_item import PlayItem
from audio_server.broadcast_core.playback_engine import (
    EngineState,
    PlaybackEngine,
    PlaybackResult,
)
from audio_server.errors import PlaybackAborted
from audio_server.state.session_log import Session

logger = logging.getLogger(__name__)


class PlaybackJob:
    """A queued playback request and, once done, its result."""

    def __init__(
        self,
        items: Sequence[PlayItem],
        session: Session,
        client_timestamp: str = "",
        request_label: Optional[str] = None,
    ):
        self.items = list(items)
        self.session = session
        self.client_timestamp = client_timestamp
        self.request_label = request_label
        self.result: Optional[PlaybackResult] = None
        self._done = threading.Event()

    def finish(self, result: PlaybackResult) -> None:
        self.result = result
        self._done.set()

    def wait(self, timeout: Optional[float] = None) -> Optional[PlaybackResult]:
        """Block until the job has run. Returns None on timeout."""
        if not self._done.wait(timeout):
            return None
        return self.result

    @property
    def done(self) -> bool:
        return self._done.is_set()


class PlaybackWorker:
    """
    Owns the engine and a FIFO of PlaybackJobs.

    Lifecycle:
        start() spawns the daemon thread; stop() lets queued jobs finish,
        then ends the thread. Jobs submitted after stop() are refused.
    """

    _STOP = object()

    def __init__(self, engine: PlaybackEngine):
        self.engine = engine
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._accepting = False
        self._lock = threading.Lock()

    def start(self) -> None:
        """
        Start the worker thread. A no-op if already running.

        Raises:
            RuntimeError: If a previous stop() timed out and its thread is still draining
        """
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                if self._accepting:
                    return
                raise RuntimeError("Playback worker is still stopping; wait for the current job to finish")
            self._accepting = True
            self._thread = threading.Thread(target=self._run, name="playback-worker", daemon=True)
            self._thread.start()
        logger.info("[PLAYBACK] Playback worker started")

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop accepting jobs and wait for the worker thread to exit.

        Args:
            timeout: Max seconds to wait for queued jobs to drain
        """
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False
            self._queue.put(self._STOP)
            thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("[PLAYBACK] Playback worker still busy after stop timeout")
        logger.info("[PLAYBACK] Playback worker stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def submit(
        self,
        items: Sequence[PlayItem],
        session: Session,
        client_timestamp: str = "",
        request_label: Optional[str] = None,
    ) -> PlaybackJob:
        """
        Queue a playback job.

        Returns:
            The job; call job.wait() for the PlaybackResult

        Raises:
            RuntimeError: If the worker is not running
        """
        job = PlaybackJob(items, session, client_timestamp, request_label)
        with self._lock:
            if not self._accepting:
                raise RuntimeError("Playback worker is not running")
            self._queue.put(job)
        pending = self._queue.qsize()
        if pending > 1:
            logger.info(f"[PLAYBACK] Playback busy, request queued ({pending} waiting)")
        return job

    def play(
        self,
        items: Sequence[PlayItem],
        session: Session,
        client_timestamp: str = "",
        request_label: Optional[str] = None,
    ) -> PlaybackResult:
        """Submit a job and block until it has played."""
        return self.submit(items, session, client_timestamp, request_label).wait()

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            if job is self._STOP:
                break
            try:
                result = self.engine.run(
                    job.items,
                    job.session,
                    client_timestamp=job.client_timestamp,
                    request_label=job.request_label,
                )
            except Exception as e:
                # The engine reports playback failures in its result; this is a bug path
                logger.error(f"[PLAYBACK] Engine crashed: {e}", exc_info=True)
                result = PlaybackResult(state=EngineState.ABORTED, error=PlaybackAborted(str(e)))
            job.finish(result)

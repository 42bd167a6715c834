"""
Playback engine: plays a sequence of items through one audio output.

States:
    IDLE -> DEVICE_OPENING -> DRAINING / PAUSED (per item) -> COMPLETED | ABORTED

Each audio item blocks the calling thread for its real duration so that the
wall-clock start time logged for it is the time it actually sounded. The
engine is not thread-safe for concurrent runs; the PlaybackWorker guarantees
one run at a time.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from audio_server.broadcast_core.audio_source import AudioSource, tone_to_source
from audio_server.broadcast_core.play_item import AudioRef, Pause, PlayItem, ToneRef
from audio_server.errors import (
    AssetNotFound,
    AudioDeviceUnavailable,
    AudioServerError,
    PlaybackAborted,
)
from audio_server.music_logic.asset_store import AssetStore
from audio_server.outputs.base_output import BaseOutput
from audio_server.state.session_log import (
    STATUS_ERROR,
    STATUS_SUCCESS,
    LogEvent,
    Session,
    SessionLogger,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAUSE_MS = 600_000


class EngineState(Enum):
    IDLE = "idle"
    DEVICE_OPENING = "device_opening"
    DRAINING = "draining"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class PlaybackResult:
    """
    Outcome of one engine run.

    Attributes:
        state: COMPLETED or ABORTED
        items_played: Items that finished (audio and pauses)
        elapsed_seconds: Wall time from device open to the end of the run
        started_ns: Wall-clock ns when the run started
        error: Set when the run aborted
        events: Every event emitted, in order (whether or not it reached disk)
        first_item_ns: Start time of the first sounding item, if any
    """
    state: EngineState
    items_played: int = 0
    elapsed_seconds: float = 0.0
    started_ns: int = 0
    error: Optional[AudioServerError] = None
    events: List[LogEvent] = field(default_factory=list)
    first_item_ns: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.state == EngineState.COMPLETED


class PlaybackEngine:
    """
    Plays PlayItems in order through outputs created by ``output_factory``.

    A new output is created and opened for every run and always closed at the
    end of it.
    """

    def __init__(
        self,
        assets: AssetStore,
        output_factory: Callable[[], BaseOutput],
        session_logger: SessionLogger,
        max_pause_ms: int = DEFAULT_MAX_PAUSE_MS,
    ):
        """
        Args:
            assets: Asset store used to resolve AudioRef items
            output_factory: Returns a fresh, unopened output per run
            session_logger: Receives one event per item
            max_pause_ms: Upper bound for any single pause
        """
        self._assets = assets
        self._output_factory = output_factory
        self._session_logger = session_logger
        self._max_pause_ms = max_pause_ms
        self._state_lock = threading.RLock()
        self._state = EngineState.IDLE

    @property
    def state(self) -> EngineState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: EngineState) -> None:
        with self._state_lock:
            self._state = state

    def _emit(self, result: PlaybackResult, session: Session, event: LogEvent) -> None:
        result.events.append(event)
        self._session_logger.log_event(session, event)

    def _resolve(self, item: PlayItem) -> AudioSource:
        if isinstance(item, AudioRef):
            asset = self._assets.lookup(item.name)
            if asset is None:
                raise AssetNotFound(item.name)
            return asset.open_source()
        if isinstance(item, ToneRef):
            return tone_to_source(item.spec)
        raise TypeError(f"Not a playable item: {item!r}")

    def _pause_length(self, item: Pause) -> int:
        if item.duration_ms > self._max_pause_ms:
            logger.warning(
                f"[PLAYBACK] Pause of {item.duration_ms}ms exceeds limit, "
                f"clamping to {self._max_pause_ms}ms"
            )
            return self._max_pause_ms
        return item.duration_ms

    def run(
        self,
        items: Sequence[PlayItem],
        session: Session,
        client_timestamp: str = "",
        request_label: Optional[str] = None,
    ) -> PlaybackResult:
        """
        Play items in order, logging one event per item to ``session``.

        Args:
            items: Sequence to play
            session: Session log to append events to
            client_timestamp: Caller-supplied time recorded on every item event
            request_label: Label for the single error event when the device fails

        Returns:
            PlaybackResult (COMPLETED or ABORTED). Never raises for playback failures.
        """
        result = PlaybackResult(state=EngineState.IDLE, started_ns=time.time_ns())
        label = request_label or (items[0].label if items else "playback")
        total = len(items)

        self._set_state(EngineState.DEVICE_OPENING)
        output = self._output_factory()
        try:
            if not output.open():
                error = AudioDeviceUnavailable(output.last_error)
                logger.error(f"[PLAYBACK] {error.message}")
                self._emit(result, session, LogEvent(time.time_ns(), label, STATUS_ERROR, client_timestamp))
                result.error = error
                result.state = EngineState.ABORTED
                self._set_state(EngineState.ABORTED)
                return result

            started = time.monotonic()
            for index, item in enumerate(items, start=1):
                try:
                    if isinstance(item, Pause):
                        self._set_state(EngineState.PAUSED)
                        duration_ms = self._pause_length(item)
                        start_ns = time.time_ns()
                        logger.info(f"[PLAYBACK] [{index}/{total}] {start_ns}: Pausing for {duration_ms} milliseconds...")
                        output.pause()
                        time.sleep(duration_ms / 1000.0)
                        output.resume()
                        event_label = f"pause_{duration_ms}ms"
                    else:
                        self._set_state(EngineState.DRAINING)
                        source = self._resolve(item)
                        start_ns = time.time_ns()
                        if result.first_item_ns is None:
                            result.first_item_ns = start_ns
                        logger.info(f"[PLAYBACK] [{index}/{total}] {start_ns}: Playing {item.label}...")
                        output.play(source)
                        event_label = item.label
                except Exception as e:
                    logger.error(f"[PLAYBACK] Item {item.label} failed, aborting session: {e}", exc_info=True)
                    self._emit(result, session, LogEvent(time.time_ns(), item.label, STATUS_ERROR, client_timestamp))
                    result.error = PlaybackAborted(
                        f"Playback aborted at {item.label} after {result.items_played} of {total} items: {e}"
                    )
                    result.state = EngineState.ABORTED
                    result.elapsed_seconds = time.monotonic() - started
                    self._set_state(EngineState.ABORTED)
                    return result

                self._emit(result, session, LogEvent(start_ns, event_label, STATUS_SUCCESS, client_timestamp))
                result.items_played += 1

            result.elapsed_seconds = time.monotonic() - started
            result.state = EngineState.COMPLETED
            self._set_state(EngineState.COMPLETED)
            logger.debug(f"[PLAYBACK] Completed {result.items_played} items in {result.elapsed_seconds:.3f}s")
            return result
        finally:
            output.close()

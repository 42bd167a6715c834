"""
Playback service: the request-level operations behind the HTTP routes.

Each operation either returns a user-facing message (or payload) or raises an
AudioServerError whose http_status the HTTP layer turns into a response.
"""

import logging
import socket
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from audio_server.broadcast_core.play_item import AudioRef, ToneRef
from audio_server.broadcast_core.playback_engine import PlaybackResult
from audio_server.errors import AssetNotFound, InvalidRequest, NoAssetsAvailable
from audio_server.music_logic import random_queue
from audio_server.music_logic.playlist_store import CreatedPlaylist
from audio_server.state.app_state import AppState
from audio_server.state.session_log import LogEvent, STATUS_SUCCESS, Session
from audio_server.synth.tone_generator import ToneSpec, tone_to_wav_bytes

logger = logging.getLogger(__name__)


def local_ip() -> str:
    """Best-effort LAN address of this host (no packets are sent)."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        sock.close()


@dataclass(frozen=True)
class LibraryListing:
    audio_files: List[str]
    playlists: List[str]

    def render(self) -> str:
        """Plain-text listing served by /list."""
        audio = "".join(f"\t\t\t\t{name}\n" for name in self.audio_files)
        playlists = "".join(f"\t\t\t\t{name}\n" for name in self.playlists)
        return (
            f"\n\tAudio files ({len(self.audio_files)}):\n\n{audio}\n\n\n\n"
            f"\tPlaylists ({len(self.playlists)}):\n\n{playlists}\n\n"
        )


class PlaybackService:
    """Request operations over an AppState."""

    def __init__(self, state: AppState):
        self.state = state

    def _require_assets(self) -> None:
        if len(self.state.assets) == 0:
            logger.warning("[SERVICE] No audio files found")
            raise NoAssetsAvailable()

    def _raise_on_failure(self, result: PlaybackResult) -> None:
        if not result.ok and result.error is not None:
            raise result.error

    def _start_bulk_session(self, kind: str, request: str, received_ns: int, client_time: str) -> Session:
        session = self.state.session_logger.start_session(kind)
        self.state.session_logger.log_event(
            session, LogEvent(received_ns, f"Received {request}", STATUS_SUCCESS, client_time)
        )
        return session

    def play_asset(self, name: str, client_time: str = "") -> str:
        """
        Play one asset on the global session.

        Raises:
            AssetNotFound: If no asset has that name
            AudioDeviceUnavailable / PlaybackAborted: If playback failed
        """
        logger.info(f"[SERVICE] {time.time_ns()}: Received /play/{name}")
        if name not in self.state.assets:
            logger.info(f"[SERVICE] Audio file {name} not found")
            raise AssetNotFound(name)

        session = self.state.session_logger.global_session()
        result = self.state.worker.play([AudioRef(name)], session, client_time, request_label=name)
        self._raise_on_failure(result)
        return f"At {result.first_item_ns} played {name}"

    def play_tone(self, spec: ToneSpec, client_time: str = "") -> str:
        """Synthesize a tone and play it on the global session."""
        spec.validate()
        logger.info(f"[SERVICE] {time.time_ns()}: Received /tone for {spec.label}")
        session = self.state.session_logger.global_session()
        result = self.state.worker.play([ToneRef(spec)], session, client_time, request_label=spec.label)
        self._raise_on_failure(result)
        return f"At {result.first_item_ns} played {spec.label}"

    def save_tone(self, spec: ToneSpec) -> Tuple[str, bytes]:
        """
        Render a tone as a downloadable WAV.

        Returns:
            Tuple of (filename, wav_bytes)
        """
        spec.validate()
        logger.info(f"[SERVICE] {time.time_ns()}: Received /save_tone for {spec.filename}")
        return spec.filename, tone_to_wav_bytes(spec)

    def play_random(self, break_ms: int = 0, file_count: Optional[int] = None, client_time: str = "") -> str:
        """
        Play a random sequence on a new "random" session.

        Args:
            break_ms: Pause between files in ms
            file_count: Files to play (None or 0 uses the configured default)
            client_time: Caller-supplied time for the request row
        """
        received_ns = time.time_ns()
        logger.info(f"[SERVICE] {received_ns}: Received /play/random")
        self._require_assets()
        if break_ms < 0:
            raise InvalidRequest(f"Invalid break_between_files: {break_ms}")
        if file_count is not None and file_count < 0:
            raise InvalidRequest(f"Invalid file_count: {file_count}")
        if not file_count:
            file_count = self.state.config.default_random_count

        items = random_queue.generate(self.state.assets.names(), file_count, break_ms)
        session = self._start_bulk_session("random", "/play/random", received_ns, client_time)
        result = self.state.worker.play(items, session, request_label="/play/random")
        self.state.session_logger.close_session(session)
        self._raise_on_failure(result)

        request_seconds = (time.time_ns() - received_ns) / 1_000_000_000
        return (
            f"At {received_ns} started {file_count} random audio files ({len(items)} items). "
            f"Playback took {result.elapsed_seconds} seconds. "
            f"Total time since request: {request_seconds} seconds."
        )

    def create_playlist(self, break_ms: int = 0, file_count: int = 0) -> CreatedPlaylist:
        """
        Generate a random playlist, persist it and hot reload the store.

        A file_count of 0 uses the configured default (10).

        Raises:
            NoAssetsAvailable: If the asset store is empty
            PlaylistIdCollision: If the id is taken by different content
        """
        logger.info(f"[SERVICE] {time.time_ns()}: Received /playlist/create")
        self._require_assets()
        if break_ms < 0:
            raise InvalidRequest(f"Invalid break_between_files: {break_ms}")
        if file_count < 0:
            raise InvalidRequest(f"Invalid file_count: {file_count}")
        if file_count == 0:
            file_count = self.state.config.default_playlist_count

        items = random_queue.generate(self.state.assets.names(), file_count, break_ms)
        created = self.state.playlists.create_from_items(items)
        logger.info(f"[SERVICE] Playlist ready: {created.filename}")
        return created

    def created_playlist_message(self, created: CreatedPlaylist) -> str:
        return (
            f"Created new playlist file server-side: {created.path}. "
            f"To play this new playlist, visit: "
            f"http://{local_ip()}:{self.state.config.port}/playlist/{created.filename}"
        )

    def play_playlist(self, name: str, client_time: str = "") -> str:
        """
        Play a stored playlist on a new "playlist" session.

        Raises:
            NoAssetsAvailable, PlaylistNotFound, PlaylistEmpty
        """
        received_ns = time.time_ns()
        logger.info(f"[SERVICE] {received_ns}: Received /playlist/{name}")
        self._require_assets()
        playlist = self.state.playlists.get(name)

        session = self._start_bulk_session("playlist", f"/playlist/{name}", received_ns, client_time)
        result = self.state.worker.play(playlist.items, session, request_label=f"/playlist/{name}")
        self.state.session_logger.close_session(session)
        self._raise_on_failure(result)

        request_seconds = (time.time_ns() - received_ns) / 1_000_000_000
        message = (
            f"At {received_ns} started playlist {name} ({len(playlist.items)} audio files). "
            f"Playback took {result.elapsed_seconds} seconds. "
            f"Total time since request: {request_seconds} seconds."
        )
        logger.info(f"[SERVICE] {message}")
        return message

    def list_library(self) -> LibraryListing:
        return LibraryListing(
            audio_files=self.state.assets.names(),
            playlists=self.state.playlists.names(),
        )

    def start_new_log(self) -> str:
        logger.info(f"[SERVICE] {time.time_ns()}: Received /startnewlog")
        session = self.state.session_logger.start_new_log()
        return f"Started new log file: {session.path}"

    def reload_playlists(self) -> str:
        count = self.state.playlists.reload()
        return f"Reloaded {count} playlists"

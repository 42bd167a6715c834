"""
Application state owned by the server runtime.

Holds every long-lived collaborator (assets, playlists, session logs, the
playback worker) and ties their lifecycle to server start/stop. Handlers get
this object injected; nothing lives in module-level globals.
"""

import logging
from typing import Callable, Optional

from audio_server.broadcast_core.playback_engine import PlaybackEngine
from audio_server.broadcast_core.playback_worker import PlaybackWorker
from audio_server.config import ServerConfig
from audio_server.music_logic.asset_store import AssetStore, Decoder, decode_audio_file
from audio_server.music_logic.playlist_store import PlaylistStore
from audio_server.outputs.base_output import BaseOutput
from audio_server.outputs.factory import create_output
from audio_server.state.session_log import SessionLogger

logger = logging.getLogger(__name__)


class AppState:
    """
    Container for the running service.

    Attributes:
        config: Loaded ServerConfig
        assets: Read-only AssetStore
        playlists: PlaylistStore (hot-reloadable)
        session_logger: SessionLogger for CSV session logs
        worker: PlaybackWorker owning the PlaybackEngine
    """

    def __init__(
        self,
        config: ServerConfig,
        assets: AssetStore,
        output_factory: Optional[Callable[[], BaseOutput]] = None,
        session_logger: Optional[SessionLogger] = None,
    ):
        self.config = config
        self.assets = assets
        self.playlists = PlaylistStore(config.playlist_dir, assets)
        self.session_logger = session_logger or SessionLogger(config.log_dir)
        self.output_factory = output_factory or (lambda: create_output(config))
        self.engine = PlaybackEngine(
            assets,
            self.output_factory,
            self.session_logger,
            max_pause_ms=config.max_pause_ms,
        )
        self.worker = PlaybackWorker(self.engine)
        self._started = False

    @classmethod
    def from_config(cls, config: ServerConfig, decoder: Decoder = decode_audio_file) -> "AppState":
        """
        Build state from configuration, decoding all assets.

        Raises:
            AssetFolderMissing: If the audio folder does not exist
        """
        assets = AssetStore.load(config.audio_dir, decoder=decoder)
        return cls(config, assets)

    def start(self) -> None:
        """Load playlists, open the global session log and start the playback worker."""
        if self._started:
            return
        self.playlists.reload()
        self.session_logger.start_new_log()
        self.worker.start()
        self._started = True
        logger.info(
            f"[STATE] Ready: {len(self.assets)} audio files, {len(self.playlists)} playlists"
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        if not self._started:
            return
        self.worker.stop(timeout)
        self._started = False
        logger.info("[STATE] Stopped")

    @property
    def started(self) -> bool:
        return self._started

"""
Playlist store: named, validated playlists loaded from a folder of .txt files.

Every playlist in the active mapping is non-empty and fully resolved against
the asset store. Reload builds a brand-new mapping without holding any lock
and then swaps it in under the write lock, so readers never see a partially
replaced mapping.
"""

import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from audio_server.broadcast_core.play_item import (
    AudioRef,
    PlayItem,
    ToneRef,
    content_hash,
    parse,
    playlist_id,
    serialize,
)
from audio_server.errors import (
    PlaylistEmpty,
    PlaylistIdCollision,
    PlaylistNotFound,
    PlaylistValidationFailed,
)
from audio_server.music_logic.asset_store import AssetStore
from audio_server.music_logic.random_queue import total_duration_ms

logger = logging.getLogger(__name__)

PLAYLIST_EXTENSION = ".txt"


class ReadWriteLock:
    """
    Many readers or one writer.

    Writers wait for active readers to drain; new readers wait while a writer
    is waiting so a reload is never starved by a stream of list requests.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class Playlist:
    """
    A validated playlist.

    Attributes:
        id: Playlist file name (the key clients use in /playlist/{name})
        items: Non-empty, fully resolved items
        content_hash: SHA-256 hex of the serialized items
        path: File the playlist was loaded from
        duration_ms: Sum of asset durations and pauses
    """
    id: str
    items: Tuple[PlayItem, ...]
    content_hash: str
    path: Optional[str] = None
    duration_ms: int = 0

    @property
    def short_id(self) -> str:
        return self.content_hash[:8]


@dataclass(frozen=True)
class CreatedPlaylist:
    """Result of create_from_items()."""
    id: str
    body: str
    filename: str
    path: str
    duration_ms: int
    written: bool


def playlist_filename(pid: str, duration_ms: int, item_count: int) -> str:
    """
    Build ``playlist_<id>_<seconds>s_<count>count.txt``.

    Seconds are rendered as a float (``12.5``, ``3.0``); the count includes pauses.
    """
    return f"playlist_{pid}_{duration_ms / 1000!r}s_{item_count}count{PLAYLIST_EXTENSION}"


class PlaylistStore:
    """
    Active mapping of playlist name to Playlist, with hot reload.

    Reads (get, names, list) take the shared lock; only the swap in reload()
    and validate_and_register() takes the exclusive lock.
    """

    def __init__(self, folder: str, assets: AssetStore):
        self.folder = folder
        self.assets = assets
        self._lock = ReadWriteLock()
        self._playlists: Dict[str, Playlist] = {}

    def _validate(self, name: str, items: Sequence[PlayItem], path: Optional[str] = None) -> Playlist:
        """
        Check a parsed playlist against the asset store.

        Raises:
            PlaylistValidationFailed: If empty, or if any asset is unresolved
        """
        if not items:
            raise PlaylistValidationFailed(name, "playlist is empty")
        for item in items:
            if isinstance(item, ToneRef):
                raise PlaylistValidationFailed(name, f"tone items are not allowed ({item.label})")
            if isinstance(item, AudioRef) and item.name not in self.assets:
                raise PlaylistValidationFailed(
                    name, f"audio file {item.name} not found", missing_asset=item.name
                )
        body = serialize(items)
        return Playlist(
            id=name,
            items=tuple(items),
            content_hash=content_hash(body),
            path=path,
            duration_ms=total_duration_ms(items, self.assets),
        )

    def validate_and_register(self, name: str, items: Sequence[PlayItem], path: Optional[str] = None) -> bool:
        """
        Validate a playlist and, if valid, add it to the active mapping.

        On rejection the store is left unchanged and a warning names the
        missing asset.

        Args:
            name: Playlist name (file name)
            items: Parsed items
            path: Optional source file

        Returns:
            True if registered, False if rejected
        """
        try:
            playlist = self._validate(name, items, path)
        except PlaylistValidationFailed as e:
            logger.warning(f"[PLAYLIST] {e.message}. Ignoring playlist {name}")
            return False

        with self._lock.write_locked():
            updated = dict(self._playlists)
            updated[name] = playlist
            self._playlists = updated
        logger.info(f"[PLAYLIST] Registered {name} ({len(playlist.items)} items)")
        return True

    def _load_folder(self) -> Dict[str, Playlist]:
        """Parse and validate every playlist file. Runs without holding the lock."""
        loaded: Dict[str, Playlist] = {}
        if not os.path.isdir(self.folder):
            logger.info(f"[PLAYLIST] Playlist folder {self.folder} not found, no playlists loaded")
            return loaded

        for entry in sorted(os.listdir(self.folder)):
            path = os.path.join(self.folder, entry)
            if not entry.endswith(PLAYLIST_EXTENSION) or not os.path.isfile(path):
                continue
            try:
                with open(path, "r", encoding="utf-8") as f:
                    text = f.read()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"[PLAYLIST] Could not read {entry}: {e}. Ignoring playlist")
                continue
            try:
                loaded[entry] = self._validate(entry, parse(text), path)
            except PlaylistValidationFailed as e:
                logger.warning(f"[PLAYLIST] {e.message}. Ignoring playlist {entry}")
        return loaded

    def reload(self) -> int:
        """
        Re-scan the folder and atomically replace the active mapping.

        Returns:
            Number of playlists now loaded
        """
        loaded = self._load_folder()
        with self._lock.write_locked():
            self._playlists = loaded
        logger.info(f"[PLAYLIST] Loaded {len(loaded)} playlists from {self.folder}")
        return len(loaded)

    def get(self, name: str) -> Playlist:
        """
        Resolve a playlist for playback.

        Raises:
            PlaylistNotFound: If no playlist has that name
            PlaylistEmpty: If the playlist has no items
        """
        with self._lock.read_locked():
            playlist = self._playlists.get(name)
        if playlist is None:
            raise PlaylistNotFound(name)
        if not playlist.items:
            raise PlaylistEmpty(name)
        return playlist

    def names(self) -> List[str]:
        with self._lock.read_locked():
            return sorted(self._playlists)

    def snapshot(self) -> Dict[str, Playlist]:
        """Copy of the active mapping, for listings."""
        with self._lock.read_locked():
            return dict(self._playlists)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._playlists)

    def __contains__(self, name: object) -> bool:
        with self._lock.read_locked():
            return name in self._playlists

    def _find_by_short_id(self, pid: str) -> Optional[Playlist]:
        prefix = f"playlist_{pid}_"
        with self._lock.read_locked():
            for name, playlist in self._playlists.items():
                if name.startswith(prefix):
                    return playlist
        return None

    def create_from_items(self, items: Sequence[PlayItem]) -> CreatedPlaylist:
        """
        Persist a generated playlist under a content-derived name and reload.

        Identical item sequences always produce the same id and file name. An
        existing file with identical content is reused rather than rewritten.

        Args:
            items: Items to persist (audio references and pauses)

        Returns:
            CreatedPlaylist describing the stored file

        Raises:
            PlaylistIdCollision: If a different playlist already owns the 8-character id
            PlaylistValidationFailed: If the items would not load back
        """
        body = serialize(items)
        full_hash = content_hash(body)
        pid = playlist_id(body)
        duration_ms = total_duration_ms(items, self.assets)
        filename = playlist_filename(pid, duration_ms, len(items))
        path = os.path.join(self.folder, filename)

        # Validate before touching the disk so a bad sequence leaves no file behind
        self._validate(filename, items, path)

        existing = self._find_by_short_id(pid)
        if existing is not None and existing.content_hash != full_hash:
            raise PlaylistIdCollision(pid, existing.id)

        written = self._persist(path, body)
        self.reload()
        return CreatedPlaylist(
            id=pid,
            body=body,
            filename=filename,
            path=path,
            duration_ms=duration_ms,
            written=written,
        )

    def _persist(self, path: str, body: str) -> bool:
        """
        Write the playlist body unless identical content is already on disk.

        Returns:
            True if the file was written, False if an identical file was reused
        """
        if os.path.isfile(path):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    if serialize(parse(f.read())) == body:
                        logger.info(f"[PLAYLIST] Reusing existing playlist file {path}")
                        return False
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"[PLAYLIST] Could not read existing {path} ({e}), overwriting")

        os.makedirs(self.folder, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.folder, prefix=".playlist_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(body + "\n")
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.info(f"[PLAYLIST] Created new playlist file server-side: {path}")
        return True

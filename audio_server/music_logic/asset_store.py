"""
Asset store: audio files decoded once at startup and held in RAM.

The store is read-only after load() and is shared by every request thread
without locking.
"""

import logging
import os
import subprocess
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np
import soundfile as sf

from audio_server.broadcast_core.audio_source import BufferSource
from audio_server.errors import AssetFolderMissing

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = (".mp3", ".wav", ".flac", ".ogg")

Decoder = Callable[[str], Tuple[np.ndarray, int]]


def _probe_sample_rate(file_path: str) -> Optional[int]:
    """
    Get the native sample rate of an audio file using ffprobe.

    Returns None if ffprobe fails or is not installed.
    """
    try:
        cmd = [
            "ffprobe",
            "-v", "error",
            "-select_streams", "a:0",
            "-show_entries", "stream=sample_rate",
            "-of", "default=noprint_wrappers=1:nokey=1",
            file_path,
        ]
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=5.0)
        if result.returncode == 0 and result.stdout.strip():
            return int(result.stdout.strip().splitlines()[0])
    except (subprocess.TimeoutExpired, ValueError, FileNotFoundError):
        pass
    return None


def _decode_with_ffmpeg(file_path: str) -> Tuple[np.ndarray, int]:
    """
    Decode any ffmpeg-readable file to float32 stereo PCM at its native rate.

    Raises:
        RuntimeError: If ffmpeg is missing or fails
    """
    sample_rate = _probe_sample_rate(file_path) or 48000
    cmd = [
        "ffmpeg",
        "-v", "error",
        "-i", file_path,
        "-f", "f32le",
        "-ac", "2",
        "-ar", str(sample_rate),
        "-",
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, timeout=120)
    except FileNotFoundError:
        raise RuntimeError("ffmpeg not found on PATH")
    if result.returncode != 0:
        raise RuntimeError(f"ffmpeg failed: {result.stderr.decode(errors='replace')[:200]}")
    samples = np.frombuffer(result.stdout, dtype=np.float32).reshape(-1, 2)
    return samples, sample_rate


def decode_audio_file(file_path: str) -> Tuple[np.ndarray, int]:
    """
    Decode an audio file into a (frames, channels) float32 array.

    libsndfile handles WAV, FLAC, OGG and (in recent builds) MP3. Anything it
    cannot read is handed to ffmpeg.

    Args:
        file_path: Path to the audio file

    Returns:
        Tuple of (samples, sample_rate)
    """
    try:
        samples, sample_rate = sf.read(file_path, dtype="float32", always_2d=True)
        return samples, sample_rate
    except (sf.LibsndfileError, RuntimeError, TypeError) as e:
        logger.debug(f"[ASSETS] soundfile could not read {file_path} ({e}), trying ffmpeg")
    return _decode_with_ffmpeg(file_path)


@dataclass(frozen=True)
class AudioAsset:
    """
    A decoded audio file.

    Attributes:
        name: File name as found in the audio folder (the lookup key)
        samples: Read-only float32 buffer shaped (frames, channels)
        sample_rate: Native sample rate in Hz
    """
    name: str
    samples: np.ndarray = field(repr=False)
    sample_rate: int

    @property
    def channels(self) -> int:
        return self.samples.shape[1]

    @property
    def frame_count(self) -> int:
        return self.samples.shape[0]

    @property
    def duration_ms(self) -> int:
        return int(round(self.frame_count * 1000 / self.sample_rate))

    def open_source(self) -> BufferSource:
        """Return a fresh playable source over the shared buffer."""
        return BufferSource(self.name, self.samples, self.sample_rate)


class AssetStore:
    """In-memory mapping of file name to decoded AudioAsset."""

    def __init__(self, assets: Optional[Dict[str, AudioAsset]] = None):
        self._assets: Dict[str, AudioAsset] = dict(assets or {})

    @classmethod
    def load(cls, folder: str, decoder: Decoder = decode_audio_file) -> "AssetStore":
        """
        Decode every supported audio file directly inside ``folder``.

        Files are matched by extension (mp3, wav, flac, ogg; case-insensitive).
        A file that fails to decode is logged and skipped.

        Args:
            folder: Audio folder path
            decoder: Callable returning (samples, sample_rate) for a path

        Returns:
            Loaded AssetStore

        Raises:
            AssetFolderMissing: If the folder does not exist
        """
        if not os.path.isdir(folder):
            raise AssetFolderMissing(folder)

        logger.info(f"[ASSETS] Preloading audio files from {folder}...")
        assets: Dict[str, AudioAsset] = {}
        for entry in sorted(os.listdir(folder)):
            path = os.path.join(folder, entry)
            if not os.path.isfile(path):
                continue
            if os.path.splitext(entry)[1].lower() not in AUDIO_EXTENSIONS:
                continue
            try:
                samples, sample_rate = decoder(path)
            except Exception as e:
                logger.warning(f"[ASSETS] Skipping {entry}: could not decode ({e})")
                continue
            if samples.ndim == 1:
                samples = samples.reshape(-1, 1)
            samples = np.ascontiguousarray(samples, dtype=np.float32)
            samples.setflags(write=False)
            assets[entry] = AudioAsset(name=entry, samples=samples, sample_rate=int(sample_rate))

        logger.info(f"[ASSETS] Preloaded {len(assets)} audio files to RAM")
        return cls(assets)

    def lookup(self, name: str) -> Optional[AudioAsset]:
        return self._assets.get(name)

    def names(self) -> List[str]:
        return sorted(self._assets)

    def __contains__(self, name: object) -> bool:
        return name in self._assets

    def __len__(self) -> int:
        return len(self._assets)

    def __iter__(self) -> Iterator[AudioAsset]:
        for name in self.names():
            yield self._assets[name]

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from audio_server.broadcast_core.audio_source import AudioSource


class BaseOutput(ABC):
    """
    Abstract base class for host audio outputs.

    An output is opened once per playback session, plays one source at a
    time (play() blocks until that source has finished), and is closed when
    the session ends. open() is a probe: a missing or busy device is reported
    by returning False, never by raising.
    """

    def __init__(self):
        self.last_error: Optional[str] = None

    @abstractmethod
    def open(self) -> bool:
        """
        Acquire the output device.

        Returns:
            True on success, False if no usable device (see last_error)
        """
        ...

    @abstractmethod
    def play(self, source: AudioSource) -> None:
        """
        Play a single source, blocking until it has finished.

        Args:
            source: Source to consume
        """
        ...

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def resume(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        """
        Release the output device. Safe to call more than once.
        """
        ...


def conform(samples: np.ndarray, src_rate: int, dst_rate: int, dst_channels: int) -> np.ndarray:
    """
    Convert a (frames, channels) buffer to the output's rate and channel count.

    Rate conversion is linear interpolation. Mono is duplicated to every output
    channel; extra channels are dropped (stereo to mono averages).

    Returns:
        C-contiguous float32 array shaped (frames, dst_channels)
    """
    if samples.ndim == 1:
        samples = samples.reshape(-1, 1)
    channels = samples.shape[1]

    if channels != dst_channels:
        if channels == 1:
            samples = np.repeat(samples, dst_channels, axis=1)
        elif dst_channels == 1:
            samples = samples.mean(axis=1, keepdims=True)
        else:
            samples = samples[:, :dst_channels]

    if src_rate != dst_rate and len(samples) > 0:
        src_frames = len(samples)
        dst_frames = max(1, int(round(src_frames * dst_rate / src_rate)))
        src_t = np.arange(src_frames, dtype=np.float64) / src_rate
        dst_t = np.arange(dst_frames, dtype=np.float64) / dst_rate
        samples = np.stack(
            [np.interp(dst_t, src_t, samples[:, c]) for c in range(samples.shape[1])],
            axis=1,
        )

    return np.ascontiguousarray(samples, dtype=np.float32)

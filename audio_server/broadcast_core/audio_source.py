"""
Playable audio sources.

An AudioSource is a finite, non-restartable stream of float32 sample blocks.
Outputs consume exactly one source per play() call.
"""

from abc import ABC, abstractmethod
from typing import Iterator, Optional

import numpy as np

from audio_server.synth.tone_generator import ToneSpec, generate_sine_tone

DEFAULT_BLOCK_FRAMES = 4096


class AudioSource(ABC):
    """
    Abstract base class for all playable sources.

    Subclasses provide sample_rate, channels, frame_count and _render().
    blocks() may only be consumed once.
    """

    def __init__(self, label: str):
        self.label = label
        self._consumed = False

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        ...

    @property
    @abstractmethod
    def channels(self) -> int:
        ...

    @property
    @abstractmethod
    def frame_count(self) -> int:
        ...

    @abstractmethod
    def _render(self) -> np.ndarray:
        """Return the full (frames, channels) float32 buffer."""
        ...

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.sample_rate

    def _claim(self) -> None:
        if self._consumed:
            raise RuntimeError(f"Audio source {self.label} has already been consumed")
        self._consumed = True

    def blocks(self, block_frames: int = DEFAULT_BLOCK_FRAMES) -> Iterator[np.ndarray]:
        """
        Yield (n, channels) float32 blocks until the source is exhausted.

        Args:
            block_frames: Maximum frames per block

        Raises:
            RuntimeError: If the source was already consumed
        """
        self._claim()
        data = self._render()
        for start in range(0, len(data), block_frames):
            yield data[start:start + block_frames]

    def read_all(self) -> np.ndarray:
        """Consume the source and return the whole (frames, channels) buffer."""
        self._claim()
        return self._render()


class BufferSource(AudioSource):
    """Source backed by an already decoded asset buffer (shared, never copied)."""

    def __init__(self, label: str, samples: np.ndarray, sample_rate: int):
        super().__init__(label)
        if samples.ndim == 1:
            samples = samples.reshape(-1, 1)
        self._samples = samples
        self._sample_rate = sample_rate

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._samples.shape[1]

    @property
    def frame_count(self) -> int:
        return self._samples.shape[0]

    def _render(self) -> np.ndarray:
        return self._samples


class ToneSource(AudioSource):
    """Mono sine tone, synthesized when first read."""

    def __init__(self, spec: ToneSpec):
        spec.validate()
        super().__init__(spec.label)
        self.spec = spec
        self._samples: Optional[np.ndarray] = None

    @property
    def sample_rate(self) -> int:
        return self.spec.sample_rate

    @property
    def channels(self) -> int:
        return 1

    @property
    def frame_count(self) -> int:
        return self.spec.sample_count

    def _render(self) -> np.ndarray:
        if self._samples is None:
            self._samples = generate_sine_tone(self.spec).reshape(-1, 1)
        return self._samples


def tone_to_source(spec: ToneSpec) -> ToneSource:
    """Build a playable mono source for a tone."""
    return ToneSource(spec)

"""
Host speaker output using pygame mixer.

The mixer is initialised for float32 samples at the configured rate and
channel count. Each play() call turns one source into a pygame Sound and
blocks until its channel is no longer busy.

Example:
    ```python
    from audio_server.outputs.pygame_output import PygameOutput

    output = PygameOutput(sample_rate=48000, channels=2)
    if output.open():
        output.play(asset.open_source())
        output.close()
    ```
"""

import logging
import os

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402

from audio_server.broadcast_core.audio_source import AudioSource  # noqa: E402
from audio_server.outputs.base_output import BaseOutput, conform  # noqa: E402

logger = logging.getLogger(__name__)


class PygameOutput(BaseOutput):
    """
    Plays sources on the default host audio device through pygame.mixer.

    Attributes:
        TICK_RATE (int): Polls per second while waiting for a sound to finish
    """

    TICK_RATE = 200

    def __init__(self, sample_rate: int = 48000, channels: int = 2, buffer_size: int = 1024) -> None:
        """
        Args:
            sample_rate: Mixer rate in Hz; sources at other rates are resampled
            channels: Mixer channel count (1 or 2)
            buffer_size: Mixer buffer in samples (smaller = less latency, more CPU)
        """
        super().__init__()
        self.sample_rate = sample_rate
        self.channels = channels
        self.buffer_size = buffer_size
        self._opened = False
        self._clock = None

    def open(self) -> bool:
        """
        Initialise pygame.mixer.

        A pygame.error here is the normal "no device" outcome: it is logged,
        stored in last_error, and reported by returning False.

        Returns:
            True if the mixer is ready
        """
        if self._opened:
            return True

        # SDL still wants a video driver on headless hosts
        if "DISPLAY" not in os.environ:
            os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

        try:
            pygame.mixer.pre_init(
                frequency=self.sample_rate,
                size=32,
                channels=self.channels,
                buffer=self.buffer_size,
            )
            pygame.mixer.init()
        except pygame.error as e:
            self.last_error = str(e)
            logger.error(f"[OUTPUT] Could not open audio output: {e}")
            return False

        init = pygame.mixer.get_init()
        if init:
            # The driver may not honour the requested format exactly
            self.sample_rate, _, self.channels = init
        self._clock = pygame.time.Clock()
        self._opened = True
        logger.debug(f"[OUTPUT] pygame mixer open: {self.sample_rate}Hz, {self.channels}ch")
        return True

    def play(self, source: AudioSource) -> None:
        """
        Play one source and block until it has finished.

        Raises:
            RuntimeError: If the output is not open or no mixer channel is free
        """
        if not self._opened:
            raise RuntimeError("Audio output is not open")

        samples = conform(source.read_all(), source.sample_rate, self.sample_rate, self.channels)
        if len(samples) == 0:
            return
        if self.channels == 1:
            samples = samples[:, 0].copy()

        sound = pygame.sndarray.make_sound(samples)
        channel = sound.play()
        if channel is None:
            raise RuntimeError(f"No free mixer channel for {source.label}")

        while channel.get_busy():
            self._clock.tick(self.TICK_RATE)

    def pause(self) -> None:
        if self._opened:
            pygame.mixer.pause()

    def resume(self) -> None:
        if self._opened:
            pygame.mixer.unpause()

    def close(self) -> None:
        if not self._opened:
            return
        try:
            pygame.mixer.stop()
            pygame.mixer.quit()
        except pygame.error as e:
            logger.warning(f"[OUTPUT] Error closing pygame mixer: {e}")
        self._opened = False
        self._clock = None

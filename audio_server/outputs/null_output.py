import logging
import time

from audio_server.broadcast_core.audio_source import AudioSource
from audio_server.outputs.base_output import BaseOutput

logger = logging.getLogger(__name__)


class NullOutput(BaseOutput):
    """
    An output that discards audio but still takes the real playing time.

    Useful on headless hosts and for dry runs: timestamps and session logs
    come out the same as with a real device.
    """

    def __init__(self):
        super().__init__()
        self.played = 0

    def open(self) -> bool:
        return True

    def play(self, source: AudioSource) -> None:
        source.read_all()
        time.sleep(source.duration_seconds)
        self.played += 1

    def pause(self) -> None:
        # Nothing is sounding
        return

    def resume(self) -> None:
        return

    def close(self) -> None:
        return

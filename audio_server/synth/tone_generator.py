"""
Pure sine tone synthesis.

Tones are generated as mono float32 sample buffers and can either be played
through the playback engine or exported as a 32-bit float WAV file.
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass

import numpy as np
import soundfile as sf

from audio_server.errors import InvalidRequest

logger = logging.getLogger(__name__)

MIN_SAMPLE_RATE = 1000  # Hz
MAX_SAMPLE_RATE = 384000  # Hz


def format_number(value: float) -> str:
    """Render 1000.0 as '1000' and 440.5 as '440.5' for labels and file names."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass(frozen=True)
class ToneSpec:
    """
    Parameters of a pure sine tone.

    Attributes:
        freq_hz: Frequency in Hz
        duration_ms: Duration in milliseconds
        amplitude_db: Amplitude in dB (0 dB is full scale, negative is quieter)
        sample_rate: Sample rate in Hz
    """
    freq_hz: float
    duration_ms: int
    amplitude_db: float
    sample_rate: int

    def validate(self) -> None:
        """
        Check that the tone can be synthesized.

        Raises:
            InvalidRequest: If any parameter is out of range
        """
        if not math.isfinite(self.freq_hz) or self.freq_hz <= 0:
            raise InvalidRequest(f"Invalid frequency: {self.freq_hz} (must be > 0)")
        if self.duration_ms < 0:
            raise InvalidRequest(f"Invalid duration: {self.duration_ms} (must be >= 0)")
        if not math.isfinite(self.amplitude_db):
            raise InvalidRequest(f"Invalid amplitude: {self.amplitude_db}")
        if self.sample_rate < MIN_SAMPLE_RATE or self.sample_rate > MAX_SAMPLE_RATE:
            raise InvalidRequest(
                f"Invalid sample rate: {self.sample_rate} "
                f"(must be {MIN_SAMPLE_RATE}-{MAX_SAMPLE_RATE} Hz)"
            )

    @property
    def label(self) -> str:
        """Item label used in session logs."""
        return f"tone_{self._stem}"

    @property
    def filename(self) -> str:
        """Download file name for the WAV export."""
        return f"{self._stem}.wav"

    @property
    def _stem(self) -> str:
        return (
            f"{format_number(self.freq_hz)}Hz_{self.duration_ms}ms_"
            f"{format_number(self.amplitude_db)}dB_@{self.sample_rate}Hz"
        )

    @property
    def sample_count(self) -> int:
        return int(self.duration_ms / 1000 * self.sample_rate)


def generate_sine_tone(spec: ToneSpec) -> np.ndarray:
    """
    Generate the tone samples.

    Sample i is ``10**(amplitude_db/20) * sin(2*pi*freq*i/sample_rate)``.

    Args:
        spec: Tone parameters

    Returns:
        1-D float32 array of ``spec.sample_count`` samples
    """
    spec.validate()
    amplitude = 10.0 ** (spec.amplitude_db / 20.0)
    t = np.arange(spec.sample_count, dtype=np.float64) / spec.sample_rate
    samples = amplitude * np.sin(2.0 * np.pi * spec.freq_hz * t)
    return samples.astype(np.float32)


def tone_to_wav_bytes(spec: ToneSpec) -> bytes:
    """
    Render the tone as a mono 32-bit IEEE float WAV file in memory.

    Args:
        spec: Tone parameters

    Returns:
        Complete WAV file contents
    """
    samples = generate_sine_tone(spec)
    buffer = io.BytesIO()
    sf.write(buffer, samples, spec.sample_rate, subtype="FLOAT", format="WAV")
    data = buffer.getvalue()
    logger.debug(f"[TONE] Rendered {spec.filename} ({len(data)} bytes, {len(samples)} samples)")
    return data

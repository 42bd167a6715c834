"""
Contract tests for sine tone synthesis and WAV export.
"""

import io

import numpy as np
import pytest
import soundfile as sf

from audio_server.broadcast_core.audio_source import tone_to_source
from audio_server.errors import InvalidRequest
from audio_server.synth.tone_generator import (
    ToneSpec,
    format_number,
    generate_sine_tone,
    tone_to_wav_bytes,
)


class TestSynthesis:
    """Sample values and counts."""

    def test_one_khz_half_second_at_minus_six_db(self):
        spec = ToneSpec(1000, 500, -6, 48000)
        samples = generate_sine_tone(spec)

        assert samples.dtype == np.float32
        assert samples.shape == (24000,)
        amplitude = 10 ** (-6 / 20)
        i = np.arange(24000)
        expected = amplitude * np.sin(2 * np.pi * 1000 * i / 48000)
        np.testing.assert_allclose(samples, expected, atol=1e-6)
        assert np.max(np.abs(samples)) == pytest.approx(amplitude, abs=1e-3)

    def test_hundred_db_is_a_gain_of_one_hundred_thousand(self):
        samples = generate_sine_tone(ToneSpec(100, 10, 100, 8000))
        i = np.arange(80)
        expected = 1e5 * np.sin(2 * np.pi * 100 * i / 8000)
        np.testing.assert_allclose(samples, expected, rtol=1e-5, atol=1e-1)

    def test_zero_duration_is_empty(self):
        assert generate_sine_tone(ToneSpec(440, 0, 0, 48000)).shape == (0,)

    @pytest.mark.parametrize("spec", [
        ToneSpec(0, 100, 0, 48000),
        ToneSpec(-440, 100, 0, 48000),
        ToneSpec(float("nan"), 100, 0, 48000),
        ToneSpec(440, -1, 0, 48000),
        ToneSpec(440, 100, float("inf"), 48000),
        ToneSpec(440, 100, 0, 10),
    ])
    def test_invalid_parameters(self, spec):
        with pytest.raises(InvalidRequest) as exc_info:
            generate_sine_tone(spec)
        assert exc_info.value.http_status == 400


class TestNaming:
    """Labels and download names."""

    def test_label_and_filename(self):
        spec = ToneSpec(1000, 500, -6, 48000)
        assert spec.label == "tone_1000Hz_500ms_-6dB_@48000Hz"
        assert spec.filename == "1000Hz_500ms_-6dB_@48000Hz.wav"

    def test_fractional_values_are_kept(self):
        spec = ToneSpec(440.5, 100, -3.5, 44100)
        assert spec.filename == "440.5Hz_100ms_-3.5dB_@44100Hz.wav"

    def test_format_number(self):
        assert format_number(1000.0) == "1000"
        assert format_number(-6) == "-6"
        assert format_number(0.25) == "0.25"


class TestWavExport:
    """32-bit float WAV output."""

    def test_wav_round_trips_through_soundfile(self):
        spec = ToneSpec(1000, 500, -6, 48000)
        data = tone_to_wav_bytes(spec)

        assert data[:4] == b"RIFF"
        assert data[8:12] == b"WAVE"
        info = sf.info(io.BytesIO(data))
        assert info.samplerate == 48000
        assert info.channels == 1
        assert info.frames == 24000
        assert info.subtype == "FLOAT"

        samples, rate = sf.read(io.BytesIO(data), dtype="float32")
        np.testing.assert_array_equal(samples, generate_sine_tone(spec))


class TestToneSource:
    """Tones as playable sources."""

    def test_source_shape_and_duration(self):
        source = tone_to_source(ToneSpec(440, 250, -6, 8000))
        assert source.label == "tone_440Hz_250ms_-6dB_@8000Hz"
        assert source.channels == 1
        assert source.duration_seconds == pytest.approx(0.25)
        assert source.read_all().shape == (2000, 1)

    def test_source_is_consumed_once(self):
        source = tone_to_source(ToneSpec(440, 10, 0, 8000))
        source.read_all()
        with pytest.raises(RuntimeError):
            source.read_all()

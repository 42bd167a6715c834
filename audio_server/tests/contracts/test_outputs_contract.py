"""
Contract tests for audio outputs.

Only the device-independent parts are exercised here: format conversion,
the null output's timing and the factory. PygameOutput is constructed but
never opened.
"""

import time

import numpy as np
import pytest

from audio_server.broadcast_core.audio_source import BufferSource
from audio_server.config import ServerConfig
from audio_server.outputs import BaseOutput, NullOutput, PygameOutput, create_output
from audio_server.outputs.base_output import conform


class TestConform:
    """conform() rate and channel conversion."""

    def test_mono_is_duplicated_to_stereo(self):
        mono = np.array([[0.1], [0.2], [0.3]], dtype=np.float32)
        out = conform(mono, 8000, 8000, 2)
        assert out.shape == (3, 2)
        np.testing.assert_array_equal(out[:, 0], out[:, 1])
        np.testing.assert_allclose(out[:, 0], [0.1, 0.2, 0.3])

    def test_stereo_is_averaged_to_mono(self):
        stereo = np.array([[1.0, 0.0], [0.5, 0.5]], dtype=np.float32)
        out = conform(stereo, 8000, 8000, 1)
        assert out.shape == (2, 1)
        np.testing.assert_allclose(out[:, 0], [0.5, 0.5])

    def test_one_dimensional_input_is_mono(self):
        out = conform(np.zeros(10, dtype=np.float32), 8000, 8000, 2)
        assert out.shape == (10, 2)

    def test_resampling_scales_frame_count(self):
        samples = np.zeros((8000, 1), dtype=np.float32)
        out = conform(samples, 8000, 48000, 1)
        assert out.shape == (48000, 1)

    def test_resampling_preserves_a_constant_signal(self):
        samples = np.full((441, 2), 0.5, dtype=np.float32)
        out = conform(samples, 44100, 48000, 2)
        assert out.shape == (480, 2)
        np.testing.assert_allclose(out, 0.5, atol=1e-6)

    def test_output_is_contiguous_float32(self):
        samples = np.zeros((100, 2), dtype=np.float64)[::2]
        out = conform(samples, 8000, 8000, 2)
        assert out.dtype == np.float32
        assert out.flags["C_CONTIGUOUS"]

    def test_empty_buffer_stays_empty(self):
        out = conform(np.zeros((0, 1), dtype=np.float32), 8000, 48000, 2)
        assert out.shape == (0, 2)


class TestNullOutput:
    """The null output discards audio but keeps real time."""

    def test_play_takes_the_source_duration(self):
        output = NullOutput()
        assert output.open()
        source = BufferSource("x.wav", np.zeros((1600, 1), dtype=np.float32), 8000)

        started = time.monotonic()
        output.play(source)

        assert time.monotonic() - started >= 0.2
        assert output.played == 1
        output.close()


class TestFactory:
    """create_output() selects the output by config."""

    def test_null(self):
        output = create_output(ServerConfig(output="null"))
        assert isinstance(output, NullOutput)
        assert isinstance(output, BaseOutput)

    def test_pygame(self):
        output = create_output(ServerConfig(output="pygame", output_sample_rate=44100, output_channels=1))
        assert isinstance(output, PygameOutput)
        assert output.sample_rate == 44100
        assert output.channels == 1

    def test_fresh_instance_each_call(self):
        config = ServerConfig(output="null")
        assert create_output(config) is not create_output(config)


class TestPygameOutputUnopened:
    """Behaviour that needs no device."""

    def test_play_before_open_fails(self):
        output = PygameOutput()
        source = BufferSource("x.wav", np.zeros((10, 1), dtype=np.float32), 8000)
        with pytest.raises(RuntimeError):
            output.play(source)

    def test_close_without_open_is_harmless(self):
        output = PygameOutput()
        output.close()
        output.pause()
        output.resume()

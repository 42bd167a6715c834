"""
Contract tests for the playlist text grammar.

- Line-oriented parse: blank lines ignored, lines trimmed, order preserved
- pause_<n>ms lines become pauses, anything else is an asset name
- serialize/parse round trip
- Content-derived ids
"""

import pytest

from audio_server.broadcast_core.play_item import (
    AudioRef,
    Pause,
    ToneRef,
    content_hash,
    parse,
    playlist_id,
    serialize,
)
from audio_server.synth.tone_generator import ToneSpec


class TestParse:
    """Tests for parse()."""

    def test_audio_pause_audio_scenario(self):
        """a.wav / pause_500ms / b.wav parses to AudioRef, Pause, AudioRef in order."""
        assert parse("a.wav\npause_500ms\nb.wav") == [
            AudioRef("a.wav"),
            Pause(500),
            AudioRef("b.wav"),
        ]

    def test_blank_lines_and_whitespace_are_ignored(self):
        """Blank lines are dropped and every line is trimmed."""
        text = "\n  a.wav  \n\n\t\npause_10ms\r\n b.wav\n\n"
        assert parse(text) == [AudioRef("a.wav"), Pause(10), AudioRef("b.wav")]

    def test_empty_text_parses_to_no_items(self):
        assert parse("") == []
        assert parse("\n\n   \n") == []

    def test_only_exact_pause_lines_are_pauses(self):
        """Lines that merely look like pauses are asset names."""
        items = parse("pause_abcms\npause_5ms.wav\npause_ms\nmy_pause_5ms")
        assert items == [
            AudioRef("pause_abcms"),
            AudioRef("pause_5ms.wav"),
            AudioRef("pause_ms"),
            AudioRef("my_pause_5ms"),
        ]

    def test_zero_length_pause(self):
        assert parse("pause_0ms") == [Pause(0)]

    def test_names_with_spaces_inside_are_kept(self):
        assert parse("  my song.wav ") == [AudioRef("my song.wav")]


class TestSerialize:
    """Tests for serialize() and the round trip."""

    def test_one_item_per_line_without_trailing_newline(self):
        items = [AudioRef("a.wav"), Pause(1000), AudioRef("b.wav")]
        assert serialize(items) == "a.wav\npause_1000ms\nb.wav"

    @pytest.mark.parametrize("text", [
        "a.wav\npause_500ms\nb.wav",
        "\n\nx.flac\n\n\npause_1ms\npause_2ms\ny.ogg\n",
        "  padded.mp3  \n",
    ])
    def test_round_trip(self, text):
        """Reserializing then reparsing yields the same sequence."""
        items = parse(text)
        assert parse(serialize(items)) == items

    def test_tone_items_cannot_be_serialized(self):
        tone = ToneRef(ToneSpec(1000, 500, -6, 48000))
        with pytest.raises(ValueError):
            serialize([AudioRef("a.wav"), tone])


class TestPlaylistId:
    """Tests for content-derived playlist ids."""

    def test_id_is_first_eight_hex_chars_of_sha256(self):
        body = "a.wav\npause_500ms\nb.wav"
        pid = playlist_id(body)
        assert len(pid) == 8
        assert content_hash(body).startswith(pid)
        int(pid, 16)

    def test_identical_bodies_share_an_id(self):
        assert playlist_id("a.wav\nb.wav") == playlist_id("a.wav\nb.wav")

    def test_different_bodies_differ(self):
        assert content_hash("a.wav\nb.wav") != content_hash("b.wav\na.wav")

    def test_known_digest(self):
        # sha256("") is a fixed, well-known value
        assert content_hash("") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        assert playlist_id("") == "e3b0c442"

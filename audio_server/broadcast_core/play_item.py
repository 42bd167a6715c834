"""
Play items and the playlist text grammar.

A playlist body is plain text, one item per line:

    a.wav
    pause_500ms
    b.wav

A line that fully matches ``pause_<digits>ms`` is a pause; any other non-blank
line names an audio asset. Lines are trimmed and blank lines are ignored.
"""

import hashlib
import re
from dataclasses import dataclass
from typing import Iterable, List, Union

from audio_server.synth.tone_generator import ToneSpec

PAUSE_PATTERN = re.compile(r"pause_(\d+)ms")
PLAYLIST_ID_LENGTH = 8


@dataclass(frozen=True)
class AudioRef:
    """Reference to a decoded asset by file name."""
    name: str

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class Pause:
    """Silence between items, in milliseconds."""
    duration_ms: int

    @property
    def label(self) -> str:
        return f"pause_{self.duration_ms}ms"


@dataclass(frozen=True)
class ToneRef:
    """
    A synthesized tone flowing through the playback engine.

    Tones are never written to playlist files; ``serialize`` refuses them.
    """
    spec: ToneSpec

    @property
    def label(self) -> str:
        return self.spec.label


PlayItem = Union[AudioRef, Pause, ToneRef]


def parse_line(line: str) -> Union[AudioRef, Pause, None]:
    """
    Parse a single playlist line.

    Returns:
        Pause for ``pause_<n>ms``, AudioRef for anything else, None for blank lines
    """
    line = line.strip()
    if not line:
        return None
    match = PAUSE_PATTERN.fullmatch(line)
    if match:
        return Pause(int(match.group(1)))
    return AudioRef(line)


def parse(text: str) -> List[PlayItem]:
    """
    Parse a playlist body into an ordered list of items.

    Args:
        text: Playlist text, one item per line

    Returns:
        Items in file order (blank lines dropped)
    """
    items: List[PlayItem] = []
    for line in text.splitlines():
        item = parse_line(line)
        if item is not None:
            items.append(item)
    return items


def serialize(items: Iterable[PlayItem]) -> str:
    """
    Render items as playlist text: one per line, no trailing newline.

    Raises:
        ValueError: If a ToneRef is present (tones have no playlist form)
    """
    lines = []
    for item in items:
        if isinstance(item, ToneRef):
            raise ValueError(f"Tone items cannot be written to a playlist: {item.label}")
        lines.append(item.label)
    return "\n".join(lines)


def content_hash(text: str) -> str:
    """Full SHA-256 hex digest of a playlist body."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def playlist_id(text: str) -> str:
    """Short playlist id: the first 8 hex characters of the content hash."""
    return content_hash(text)[:PLAYLIST_ID_LENGTH]

"""
Outputs module for the audio trigger server.

This package contains the host audio outputs that playback sessions
play through.
"""

from .base_output import BaseOutput
from .null_output import NullOutput
from .pygame_output import PygameOutput
from .factory import create_output

__all__ = [
    "BaseOutput",
    "NullOutput",
    "PygameOutput",
    "create_output",
]

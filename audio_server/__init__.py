"""Audio trigger server: remote-triggered audio playback over HTTP."""

__version__ = "0.1.0"

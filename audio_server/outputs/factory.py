from audio_server.config import ServerConfig
from .base_output import BaseOutput
from .null_output import NullOutput
from .pygame_output import PygameOutput


def create_output(config: ServerConfig) -> BaseOutput:
    """
    Create an audio output based on configuration.

    Config:
        output: "pygame" | "null" (AUDIO_SERVER_OUTPUT, default: "pygame")
        output_sample_rate / output_channels: mixer format for "pygame"

    Returns:
        A fresh, unopened BaseOutput. Each playback session gets its own.
    """
    if config.output == "null":
        # Discard audio, timing and logging still run
        return NullOutput()

    return PygameOutput(sample_rate=config.output_sample_rate, channels=config.output_channels)

"""
Configuration management for the audio trigger server.

Reads configuration from an optional .env file and environment variables with
sensible defaults.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Default .env file location
DEFAULT_ENV_FILE = Path(".env")

VALID_OUTPUTS = ("pygame", "null")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

logger = logging.getLogger(__name__)


def _load_env_file() -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(os.getenv("AUDIO_SERVER_ENV_FILE", str(DEFAULT_ENV_FILE)))
    if env_path.exists():
        load_dotenv(env_path, override=False)  # Don't override existing env vars
        logger.debug(f"Loaded environment variables from {env_path}")


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Invalid {name}: {raw} (must be an integer)")


@dataclass
class ServerConfig:
    """Server configuration loaded from .env file and environment variables."""

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 5055

    # Folders
    audio_dir: str = "./audio"
    playlist_dir: str = "./playlists"
    log_dir: str = "./logs"

    # Audio output
    output: str = "pygame"
    output_sample_rate: int = 48000
    output_channels: int = 2

    # Playback limits and defaults
    max_pause_ms: int = 600_000
    default_random_count: int = 100
    default_playlist_count: int = 10

    # Operational logging
    log_level: str = "INFO"
    app_log_file: Optional[str] = None

    @classmethod
    def load_config(cls) -> "ServerConfig":
        """
        Load configuration from environment variables.

        Returns:
            ServerConfig instance with loaded values

        Raises:
            ValueError: If configuration is invalid
        """
        _load_env_file()

        app_log_file = os.getenv("AUDIO_SERVER_APP_LOG_FILE") or None

        config = cls(
            host=os.getenv("AUDIO_SERVER_HOST", "0.0.0.0"),
            port=_int_env("AUDIO_SERVER_PORT", "5055"),
            audio_dir=os.getenv("AUDIO_SERVER_AUDIO_DIR", "./audio"),
            playlist_dir=os.getenv("AUDIO_SERVER_PLAYLIST_DIR", "./playlists"),
            log_dir=os.getenv("AUDIO_SERVER_LOG_DIR", "./logs"),
            output=os.getenv("AUDIO_SERVER_OUTPUT", "pygame").strip().lower(),
            output_sample_rate=_int_env("AUDIO_SERVER_OUTPUT_SAMPLE_RATE", "48000"),
            output_channels=_int_env("AUDIO_SERVER_OUTPUT_CHANNELS", "2"),
            max_pause_ms=_int_env("AUDIO_SERVER_MAX_PAUSE_MS", "600000"),
            default_random_count=_int_env("AUDIO_SERVER_DEFAULT_RANDOM_COUNT", "100"),
            default_playlist_count=_int_env("AUDIO_SERVER_DEFAULT_PLAYLIST_COUNT", "10"),
            log_level=os.getenv("AUDIO_SERVER_LOG_LEVEL", "INFO"),
            app_log_file=app_log_file,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.port < 0 or self.port > 65535:
            raise ValueError(f"Invalid port: {self.port} (must be 0-65535)")

        if self.output not in VALID_OUTPUTS:
            raise ValueError(
                f"Invalid AUDIO_SERVER_OUTPUT: {self.output} "
                f"(must be one of: {', '.join(VALID_OUTPUTS)})"
            )

        if self.output_sample_rate < 8000 or self.output_sample_rate > 192000:
            raise ValueError(f"Invalid output sample rate: {self.output_sample_rate} (must be 8000-192000 Hz)")

        if self.output_channels not in (1, 2):
            raise ValueError(f"Invalid output channels: {self.output_channels} (must be 1 or 2)")

        if self.max_pause_ms <= 0:
            raise ValueError(f"Invalid max pause: {self.max_pause_ms} (must be > 0)")

        if self.default_random_count <= 0 or self.default_playlist_count <= 0:
            raise ValueError("Default file counts must be > 0")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {self.log_level} "
                f"(must be one of: {', '.join(VALID_LOG_LEVELS)})"
            )


def load_config() -> ServerConfig:
    """
    Load and validate server configuration from environment variables.

    Raises:
        ValueError: If configuration is invalid
    """
    try:
        return ServerConfig.load_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise

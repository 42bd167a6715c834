"""
Process bootstrap for the audio trigger server.

Parses the command line, sets up logging, loads configuration and runs the
HTTP server until SIGTERM or Ctrl+C. ``trigger`` hands off to the remote
trigger client instead.

Example:
    python -m audio_server --port 5055 --audio-dir ./audio
    python -m audio_server trigger --host 192.168.1.20 play a.wav
"""

import argparse
import logging
import logging.handlers
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from audio_server.app.http_server import create_server
from audio_server.app.service import PlaybackService
from audio_server.config import ServerConfig, load_config
from audio_server.errors import AssetFolderMissing
from audio_server.remote.trigger_client import add_trigger_arguments, run_trigger
from audio_server.state.app_state import AppState

logger = logging.getLogger(__name__)


class Colors:
    """ANSI color codes for interactive console output."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    BLUE = '\033[34m'
    CYAN = '\033[36m'


class ColoredFormatter(logging.Formatter):
    """
    Console formatter for interactive mode.

    Drops timestamps and module names, colors warnings and errors, and
    highlights playback lines so a person watching the console can follow
    what is sounding.
    """

    def __init__(self, *args, **kwargs):
        if 'fmt' not in kwargs:
            kwargs['fmt'] = '%(message)s'
        super().__init__(*args, **kwargs)

    def format(self, record):
        msg = record.getMessage()
        if record.levelno >= logging.ERROR:
            return f"{Colors.RED}✗ {msg}{Colors.RESET}"
        if record.levelno == logging.WARNING:
            return f"{Colors.YELLOW}⚠ {msg}{Colors.RESET}"
        if 'Playing ' in msg:
            return f"{Colors.GREEN}▶ {msg}{Colors.RESET}"
        if 'Pausing for' in msg:
            return f"{Colors.BLUE}{msg}{Colors.RESET}"
        if record.levelno == logging.DEBUG:
            return f"{Colors.DIM}{msg}{Colors.RESET}"
        return msg


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None, interactive: bool = False) -> None:
    """
    Configure operational logging.

    Args:
        level: Root log level name
        log_file: Optional file; rotates at 10MB keeping 5 backups
        interactive: Colored, message-only console output

    Note:
        CSV session logs are written by SessionLogger and are not affected here.
    """
    handlers = []

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        handlers.append(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    if interactive:
        console_handler.setFormatter(ColoredFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    handlers.append(console_handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audio_server",
        description="Remote-triggered audio playback server",
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP server (default)")
    serve.add_argument('--host', help='Bind address (overrides AUDIO_SERVER_HOST)')
    serve.add_argument('--port', type=int, help='Bind port (overrides AUDIO_SERVER_PORT)')
    serve.add_argument('--audio-dir', help='Audio folder (overrides AUDIO_SERVER_AUDIO_DIR)')
    serve.add_argument('--playlist-dir', help='Playlist folder (overrides AUDIO_SERVER_PLAYLIST_DIR)')
    serve.add_argument('--log-dir', help='Session log folder (overrides AUDIO_SERVER_LOG_DIR)')
    serve.add_argument('--output', choices=['pygame', 'null'], help='Audio output (overrides AUDIO_SERVER_OUTPUT)')
    serve.add_argument(
        '--interactive', '-i',
        action='store_true',
        help='Colored console output without timestamps'
    )

    trigger = sub.add_parser("trigger", help="Send a request to a running server")
    add_trigger_arguments(trigger)

    return parser


def apply_overrides(config: ServerConfig, args: argparse.Namespace) -> ServerConfig:
    """Apply command-line overrides to a loaded config and re-validate."""
    if args.host:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.audio_dir:
        config.audio_dir = args.audio_dir
    if args.playlist_dir:
        config.playlist_dir = args.playlist_dir
    if args.log_dir:
        config.log_dir = args.log_dir
    if args.output:
        config.output = args.output
    config.validate()
    return config


def serve(config: ServerConfig) -> int:
    """
    Run the server until interrupted.

    Returns:
        Process exit code
    """
    try:
        state = AppState.from_config(config)
    except AssetFolderMissing as e:
        logger.critical(e.message)
        return 1

    state.start()
    server = create_server(PlaybackService(state), config.host, config.port)

    def _handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        # shutdown() blocks until serve_forever() returns, so not from this thread
        threading.Thread(target=server.shutdown, daemon=True).start()

    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        server.server_close()
        state.stop(timeout=5.0)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0].startswith("-"):
        argv.insert(0, "serve")

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "trigger":
        setup_logging("WARNING")
        return run_trigger(args)

    try:
        config = apply_overrides(load_config(), args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    log_file = Path(config.app_log_file) if config.app_log_file else None
    setup_logging(config.log_level, log_file, interactive=args.interactive)

    if args.interactive:
        print(f"\n{Colors.BOLD}{Colors.CYAN}{'=' * 60}{Colors.RESET}")
        print(f"{Colors.BOLD}{Colors.CYAN}  Audio Trigger Server{Colors.RESET}")
        print(f"{Colors.BOLD}{Colors.CYAN}{'=' * 60}{Colors.RESET}")
        print(f"{Colors.DIM}Audio files: {config.audio_dir}{Colors.RESET}")
        print(f"{Colors.DIM}Playlists:   {config.playlist_dir}{Colors.RESET}")
        print(f"{Colors.DIM}Session logs: {config.log_dir}{Colors.RESET}\n")

    return serve(config)

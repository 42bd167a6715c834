"""
Remote trigger client for the audio trigger server.

Sends playback requests over HTTP and stamps every playback request with the
client's wall-clock time (``time=<ns>``) so the server's session logs can be
correlated with the moment the request was sent.
"""

import argparse
import logging
import os
import re
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from audio_server.synth.tone_generator import format_number

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5055

_FILENAME_PATTERN = re.compile(r'filename="?([^";]+)"?')


@dataclass
class TriggerResponse:
    """
    Server reply.

    Attributes:
        status_code: HTTP status
        message: JSON "message" field, or the text body for plain-text routes
        content: Raw body bytes (downloads)
        filename: Attachment file name for download routes
    """
    status_code: int
    message: str
    content: bytes = b""
    filename: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @classmethod
    def from_response(cls, response: httpx.Response) -> "TriggerResponse":
        filename = None
        disposition = response.headers.get("content-disposition", "")
        match = _FILENAME_PATTERN.search(disposition)
        if match:
            filename = match.group(1)

        content_type = response.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            try:
                message = str(response.json().get("message", ""))
            except ValueError:
                message = response.text
        elif filename is None:
            message = response.text
        else:
            message = f"Downloaded {filename} ({len(response.content)} bytes)"
        return cls(response.status_code, message, response.content, filename)


class TriggerClient:
    """
    Client for the audio trigger server's HTTP API.

    Playback calls block until the server has finished playing, so reads
    have no timeout by default.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = DEFAULT_PORT, connect_timeout: float = 5.0):
        """
        Args:
            host: Server host
            port: Server port (default: 5055)
            connect_timeout: Seconds to wait for the TCP connection
        """
        self.host = host
        self.port = port
        self.base_url = f"http://{host}:{port}"
        self.timeout = httpx.Timeout(connect_timeout, read=None)

        # Suppress httpx INFO level request logging
        logging.getLogger("httpx").setLevel(logging.WARNING)

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None, stamp: bool = False) -> Optional[TriggerResponse]:
        params = dict(params or {})
        if stamp:
            params["time"] = str(time.time_ns())
        url = f"{self.base_url}{path}"
        try:
            response = httpx.get(url, params=params, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.warning(f"[TRIGGER] Request to {url} failed: {e}")
            return None
        return TriggerResponse.from_response(response)

    def ping(self) -> Optional[TriggerResponse]:
        return self._get("/ping")

    def list(self) -> Optional[TriggerResponse]:
        return self._get("/list")

    def start_new_log(self) -> Optional[TriggerResponse]:
        return self._get("/startnewlog")

    def play(self, name: str) -> Optional[TriggerResponse]:
        """Play one audio file; returns once it has finished."""
        return self._get(f"/play/{name}", stamp=True)

    def play_random(self, break_ms: int = 0, file_count: Optional[int] = None) -> Optional[TriggerResponse]:
        params: Dict[str, Any] = {"break_between_files": break_ms}
        if file_count is not None:
            params["file_count"] = file_count
        return self._get("/play/random", params, stamp=True)

    def tone(self, freq: float, duration_ms: int, amplitude_db: float, sample_rate: int) -> Optional[TriggerResponse]:
        return self._get(f"/tone/{format_number(freq)}/{duration_ms}/{format_number(amplitude_db)}/{sample_rate}", stamp=True)

    def save_tone(self, freq: float, duration_ms: int, amplitude_db: float, sample_rate: int) -> Optional[TriggerResponse]:
        return self._get(f"/save_tone/{format_number(freq)}/{duration_ms}/{format_number(amplitude_db)}/{sample_rate}")

    def playlist(self, name: str) -> Optional[TriggerResponse]:
        return self._get(f"/playlist/{name}", stamp=True)

    def create_playlist(self, break_ms: int = 0, file_count: int = 0, no_download: bool = False) -> Optional[TriggerResponse]:
        params = {
            "break_between_files": break_ms,
            "file_count": file_count,
            "no_download": "true" if no_download else "false",
        }
        return self._get("/playlist/create", params)

    def reload_playlists(self) -> Optional[TriggerResponse]:
        return self._get("/playlist/reload")


def add_trigger_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the trigger sub-commands to ``parser``."""
    parser.add_argument('--host', default=os.getenv("AUDIO_SERVER_REMOTE_HOST", "127.0.0.1"), help='Server host')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT, help='Server port')
    parser.add_argument('--out', default=".", help='Folder for downloaded files')
    actions = parser.add_subparsers(dest="action", required=True)

    actions.add_parser("ping")
    actions.add_parser("list")
    actions.add_parser("startnewlog")
    actions.add_parser("reload")

    play = actions.add_parser("play", help="Play one audio file")
    play.add_argument("name")

    random_cmd = actions.add_parser("random", help="Play random audio files")
    random_cmd.add_argument("--break", dest="break_ms", type=int, default=0)
    random_cmd.add_argument("--count", type=int, default=None)

    for name in ("tone", "save-tone"):
        tone = actions.add_parser(name)
        tone.add_argument("freq", type=float)
        tone.add_argument("duration_ms", type=int)
        tone.add_argument("amplitude_db", type=float)
        tone.add_argument("sample_rate", type=int)

    playlist = actions.add_parser("playlist", help="Play a stored playlist")
    playlist.add_argument("name")

    create = actions.add_parser("create-playlist", help="Generate a random playlist")
    create.add_argument("--break", dest="break_ms", type=int, default=0)
    create.add_argument("--count", type=int, default=0)
    create.add_argument("--no-download", action="store_true")


def run_trigger(args: argparse.Namespace) -> int:
    """
    Execute a parsed trigger command and print the server's reply.

    Returns:
        0 on a 2xx reply, 1 otherwise
    """
    client = TriggerClient(args.host, args.port)
    action = args.action

    if action == "ping":
        response = client.ping()
    elif action == "list":
        response = client.list()
    elif action == "startnewlog":
        response = client.start_new_log()
    elif action == "reload":
        response = client.reload_playlists()
    elif action == "play":
        response = client.play(args.name)
    elif action == "random":
        response = client.play_random(args.break_ms, args.count)
    elif action == "tone":
        response = client.tone(args.freq, args.duration_ms, args.amplitude_db, args.sample_rate)
    elif action == "save-tone":
        response = client.save_tone(args.freq, args.duration_ms, args.amplitude_db, args.sample_rate)
    elif action == "playlist":
        response = client.playlist(args.name)
    elif action == "create-playlist":
        response = client.create_playlist(args.break_ms, args.count, args.no_download)
    else:
        print(f"Unknown action: {action}", file=sys.stderr)
        return 2

    if response is None:
        print(f"Could not reach server at {client.base_url}", file=sys.stderr)
        return 1

    if response.ok and response.filename:
        os.makedirs(args.out, exist_ok=True)
        target = os.path.join(args.out, os.path.basename(response.filename))
        with open(target, "wb") as f:
            f.write(response.content)
        print(f"Saved {target}")
        return 0

    stream = sys.stdout if response.ok else sys.stderr
    print(f"[{response.status_code}] {response.message}", file=stream)
    return 0 if response.ok else 1

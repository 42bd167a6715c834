"""
HTTP server for the audio trigger service.

All routes are GET. Playback routes respond only once playback has finished,
so a client's round trip brackets the real sound.
"""

import json
import logging
import socketserver
from http.server import BaseHTTPRequestHandler
from typing import Dict, List, Optional
from urllib.parse import parse_qs, unquote, urlsplit

from audio_server.app.service import PlaybackService
from audio_server.errors import AudioServerError, InvalidRequest
from audio_server.synth.tone_generator import ToneSpec

logger = logging.getLogger(__name__)

HELP_TEXT = """
    Available routes:
        - GET /ping                         --> pong

        - GET /list                         --> list all available audio files and playlists

        - GET /startnewlog                  --> start a new global log file

        - GET /play/{audio_file_name}       --> play the audio file
                (eg. /play/1.wav?time=1700000000000000000)

        - GET /play/random                  --> play random audio files. Optional parameters:
                - break_between_files (in milliseconds, default = 0)
                - file_count (number of files to play, default = 100)

        - GET /tone/{freq}/{duration}/{amplitude}/{sample_rate}
                                            --> play a pure sine tone
                (eg. /tone/1000/500/-6/48000 ==> 1000Hz for 500ms at -6dB)

        - GET /save_tone/{freq}/{duration}/{amplitude}/{sample_rate}
                                            --> download a .wav file of a pure sine tone

        - GET /playlist/create              --> create a random playlist. Optional parameters:
                - break_between_files (in milliseconds, default = 0)
                - file_count (number of files, default = 10)
                - no_download (only create the playlist server-side, default = false)

        - GET /playlist/reload              --> re-scan the playlists folder

        - GET /playlist/{playlist_name}     --> play a playlist on the server

    Note:
        - Every playback route accepts ?time=<client timestamp>, recorded in the session log.
        - /play/random and /playlist/{name} always create a new log file for that session.
        - /playlist/create hot reloads the playlists folder, so the new playlist can be played right away.
"""

TRUE_VALUES = ("1", "true", "yes", "on")


def _query_str(query: Dict[str, List[str]], name: str, default: str = "") -> str:
    values = query.get(name)
    return values[0] if values else default


def _query_int(query: Dict[str, List[str]], name: str, default: Optional[int]) -> Optional[int]:
    raw = _query_str(query, name)
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidRequest(f"Invalid {name}: {raw} (must be an integer)")


def _query_bool(query: Dict[str, List[str]], name: str) -> bool:
    return _query_str(query, name).strip().lower() in TRUE_VALUES


def parse_tone_path(parts: List[str]) -> ToneSpec:
    """
    Build a ToneSpec from /{freq}/{duration}/{amplitude}/{sample_rate}.

    Raises:
        InvalidRequest: If the path has the wrong shape or bad numbers
    """
    if len(parts) != 4:
        raise InvalidRequest("Expected /{freq}/{duration}/{amplitude}/{sample_rate}")
    freq, duration, amplitude, sample_rate = parts
    try:
        spec = ToneSpec(
            freq_hz=float(freq),
            duration_ms=int(duration),
            amplitude_db=float(amplitude),
            sample_rate=int(sample_rate),
        )
    except ValueError:
        raise InvalidRequest(f"Invalid tone parameters: {'/'.join(parts)}")
    spec.validate()
    return spec


class AudioRequestHandler(BaseHTTPRequestHandler):
    """
    Routes GET requests to the PlaybackService.

    AudioServerError subclasses map to their http_status with a JSON
    {"message": ...} body; anything else is a logged 500.
    """

    service: Optional[PlaybackService] = None

    def do_GET(self):
        """Handle GET requests."""
        parsed = urlsplit(self.path)
        path = unquote(parsed.path)
        query = parse_qs(parsed.query)
        try:
            self._route(path, query)
        except AudioServerError as e:
            logger.info(f"[HTTP] {path} -> {e.http_status}: {e.message}")
            self._send_json(e.http_status, {"message": e.message})
        except Exception as e:
            logger.error(f"[HTTP] Unhandled error serving {path}: {e}", exc_info=True)
            self._send_json(500, {"message": f"Internal server error: {e}"})

    def _route(self, path: str, query: Dict[str, List[str]]) -> None:
        client_time = _query_str(query, "time")

        if path == "/":
            self._send_text(200, HELP_TEXT)
        elif path == "/ping":
            self._send_text(200, "pong")
        elif path == "/list":
            self._send_text(200, self.service.list_library().render())
        elif path == "/startnewlog":
            self._send_message(self.service.start_new_log())
        elif path == "/play/random":
            message = self.service.play_random(
                break_ms=_query_int(query, "break_between_files", 0),
                file_count=_query_int(query, "file_count", None),
                client_time=client_time,
            )
            self._send_message(message)
        elif path.startswith("/play/") and len(path) > len("/play/"):
            self._send_message(self.service.play_asset(path[len("/play/"):], client_time))
        elif path.startswith("/tone/"):
            spec = parse_tone_path(path[len("/tone/"):].split("/"))
            self._send_message(self.service.play_tone(spec, client_time))
        elif path.startswith("/save_tone/"):
            spec = parse_tone_path(path[len("/save_tone/"):].split("/"))
            filename, data = self.service.save_tone(spec)
            self._send_download(data, "audio/wav", filename)
        elif path == "/playlist/create":
            self._handle_create_playlist(query)
        elif path == "/playlist/reload":
            self._send_message(self.service.reload_playlists())
        elif path.startswith("/playlist/") and len(path) > len("/playlist/"):
            self._send_message(self.service.play_playlist(path[len("/playlist/"):], client_time))
        else:
            self._send_json(404, {"message": "Not Found"})

    def _handle_create_playlist(self, query: Dict[str, List[str]]) -> None:
        created = self.service.create_playlist(
            break_ms=_query_int(query, "break_between_files", 0),
            file_count=_query_int(query, "file_count", 0),
        )
        if _query_bool(query, "no_download"):
            self._send_message(self.service.created_playlist_message(created))
        else:
            self._send_download(created.body.encode("utf-8"), "text/plain; charset=utf-8", created.filename)

    def _reject_method(self):
        self._send_json(405, {"message": "Method Not Allowed"})

    def do_POST(self):
        """Only GET is supported."""
        self._reject_method()

    def do_PUT(self):
        self._reject_method()

    def do_PATCH(self):
        self._reject_method()

    def do_DELETE(self):
        self._reject_method()

    def _send_json(self, status: int, payload: dict) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        self._write(body)

    def _send_message(self, message: str) -> None:
        self._send_json(200, {"message": message})

    def _send_text(self, status: int, text: str) -> None:
        body = text.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self._write(body)

    def _send_download(self, data: bytes, content_type: str, filename: str) -> None:
        self.send_response(200)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Disposition", f"attachment; filename={filename}")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self._write(data)

    def _write(self, body: bytes) -> None:
        try:
            self.wfile.write(body)
        except (BrokenPipeError, ConnectionResetError) as e:
            # Client went away; playback already happened
            logger.debug(f"[HTTP] Client disconnected before response: {e}")

    def log_message(self, format, *args):
        """Override to use our logger instead of stderr."""
        logger.debug(f"{self.address_string()} - {format % args}")


def create_handler_class(service: PlaybackService):
    """
    Create a handler class with the playback service bound.

    Args:
        service: PlaybackService instance

    Returns:
        Handler class with service set
    """
    class Handler(AudioRequestHandler):
        pass

    Handler.service = service
    return Handler


class ThreadingHTTPServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """
    Threaded HTTP server; each request runs in its own thread.

    Playback requests block their thread until the playback worker has
    played them, so other routes (ping, list) stay responsive meanwhile.
    """
    allow_reuse_address = True
    daemon_threads = True


def create_server(service: PlaybackService, host: str, port: int) -> ThreadingHTTPServer:
    """Bind a server for ``service``. Port 0 picks a free port."""
    server = ThreadingHTTPServer((host, port), create_handler_class(service))
    bound_host, bound_port = server.server_address[:2]
    logger.info(f"[HTTP] Listening on http://{bound_host}:{bound_port}/")
    return server

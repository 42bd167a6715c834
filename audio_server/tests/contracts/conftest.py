"""
Shared pytest fixtures for audio server contract tests.

Assets are in-memory silent buffers and outputs are test doubles, so no
sound card is needed. Playlists and session logs live under tmp_path.
"""

import threading
from contextlib import contextmanager

import pytest

from audio_server.app.http_server import create_server
from audio_server.app.service import PlaybackService
from audio_server.config import ServerConfig
from audio_server.state.app_state import AppState
from audio_server.state.session_log import SessionLogger
from audio_server.tests.contracts.test_doubles import (
    OutputFactory,
    RecordingOutput,
    make_asset_store,
)

# Short durations keep real-time playback tests fast
ASSET_DURATIONS_MS = {
    "a.wav": 40,
    "b.wav": 60,
    "c.wav": 30,
    "d.wav": 50,
    "e.wav": 20,
}


@pytest.fixture
def asset_store():
    """Five silent assets a.wav..e.wav."""
    return make_asset_store(ASSET_DURATIONS_MS)


@pytest.fixture
def server_config(tmp_path):
    """Config pointing every folder into tmp_path, bound to an ephemeral port."""
    (tmp_path / "playlists").mkdir()
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        audio_dir=str(tmp_path / "audio"),
        playlist_dir=str(tmp_path / "playlists"),
        log_dir=str(tmp_path / "logs"),
        output="null",
    )


@pytest.fixture
def session_logger(tmp_path):
    return SessionLogger(str(tmp_path / "logs"))


@pytest.fixture
def recording_output():
    """Output double that records calls without blocking."""
    return RecordingOutput(realtime=False)


@pytest.fixture
def app_state(server_config, asset_store, recording_output):
    """Started AppState wired to the recording output."""
    state = AppState(server_config, asset_store, output_factory=OutputFactory(recording_output))
    state.start()
    yield state
    state.stop(timeout=5.0)


@contextmanager
def running_server(state: AppState):
    """Serve ``state`` on 127.0.0.1 with an ephemeral port; yields the base URL."""
    server = create_server(PlaybackService(state), "127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5.0)


@pytest.fixture
def base_url(app_state):
    """Base URL of an in-process server over app_state."""
    with running_server(app_state) as url:
        yield url

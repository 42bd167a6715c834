"""
Error kinds for the audio trigger server.

Every error that can reach an HTTP caller carries the status code it maps to.
Errors that are only ever logged (validation, log writes) keep a status for
completeness but are never raised across the HTTP boundary.
"""

from typing import Optional


class AudioServerError(Exception):
    """Base class for all expected, caller-visible failures."""

    http_status: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AudioDeviceUnavailable(AudioServerError):
    """The host has no usable audio output (missing, busy or refused)."""

    http_status = 500

    def __init__(self, detail: Optional[str] = None):
        message = "Could not open the audio output. Is there any audio output device available?"
        if detail:
            message = f"{message} - Error: {detail}"
        super().__init__(message)
        self.detail = detail


class AssetNotFound(AudioServerError):
    http_status = 404

    def __init__(self, name: str):
        super().__init__(f"Audio file {name} not found")
        self.name = name


class AssetFolderMissing(AudioServerError):
    """Raised at startup when the audio folder does not exist (fatal)."""

    def __init__(self, folder: str):
        super().__init__(
            f"Audio folder not found: {folder}. "
            f"Create it and put your audio files in it."
        )
        self.folder = folder


class NoAssetsAvailable(AudioServerError):
    http_status = 404

    def __init__(self):
        super().__init__("No audio files found")


class PlaylistNotFound(AudioServerError):
    http_status = 404

    def __init__(self, name: str):
        super().__init__(f"Playlist {name} not found")
        self.name = name


class PlaylistEmpty(AudioServerError):
    http_status = 404

    def __init__(self, name: str):
        super().__init__(f"Playlist {name} is empty")
        self.name = name


class PlaylistValidationFailed(AudioServerError):
    """A playlist file was rejected while loading. Logged, never returned over HTTP."""

    http_status = 422

    def __init__(self, name: str, reason: str, missing_asset: Optional[str] = None):
        super().__init__(f"Playlist {name} rejected: {reason}")
        self.name = name
        self.reason = reason
        self.missing_asset = missing_asset


class PlaylistIdCollision(AudioServerError):
    """Two different playlist bodies truncated to the same 8-character id."""

    http_status = 409

    def __init__(self, playlist_id: str, existing: str):
        super().__init__(
            f"Playlist id {playlist_id} already belongs to {existing} with different content"
        )
        self.playlist_id = playlist_id
        self.existing = existing


class LogWriteFailed(AudioServerError):
    """Appending to a session log failed. Reported on the error channel only."""

    def __init__(self, path: str, detail: str):
        super().__init__(f"Couldn't write to log file {path}: {detail}")
        self.path = path
        self.detail = detail


class InvalidRequest(AudioServerError):
    http_status = 400


class PlaybackAborted(AudioServerError):
    """An item failed mid-session; the remaining items were not played."""

    http_status = 500

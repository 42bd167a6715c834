"""
Session logs: append-only CSV event streams correlating play times.

There are two scopes:
- a global stream shared by single plays, tone plays and /startnewlog
- a per-session stream for each /play/random and /playlist run

Files are opened, appended and closed on every write. Only one playback
session produces events at a time, so no cross-session locking is needed.
A failed write is reported on the operational log and never interrupts
playback.
"""

import csv
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from audio_server.errors import LogWriteFailed

logger = logging.getLogger(__name__)

CSV_HEADER = ["timestamp_audio", "audio_filename", "status", "timestamp_client"]

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

GLOBAL_KIND = "global"
SESSION_KINDS = (GLOBAL_KIND, "single", "tone", "random", "playlist")


@dataclass(frozen=True)
class LogEvent:
    """
    One row of a session log.

    Attributes:
        host_timestamp_ns: Wall-clock ns when the item started (or the request arrived)
        item_label: Asset name, pause_<n>ms, tone label or request description
        status: "success" or "error"
        client_timestamp: Opaque caller-supplied time, empty when absent
    """
    host_timestamp_ns: int
    item_label: str
    status: str = STATUS_SUCCESS
    client_timestamp: str = ""

    def to_row(self) -> List[str]:
        return [str(self.host_timestamp_ns), self.item_label, self.status, self.client_timestamp]


@dataclass
class Session:
    """A log stream on disk. Events are only ever appended."""
    kind: str
    session_id: str
    start_time: datetime
    path: str
    closed: bool = field(default=False)


class SessionLogger:
    """
    Creates session log files and appends events to them.

    The current global session is a pointer guarded by a lock held only for
    the read-modify-write of that pointer.
    """

    def __init__(self, log_dir: str):
        self.log_dir = log_dir
        self._global_lock = threading.Lock()
        self._global: Optional[Session] = None

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _write_rows(self, path: str, rows: List[List[str]]) -> None:
        with open(path, "a", newline="", encoding="utf-8") as f:
            writer = csv.writer(f, lineterminator="\n")
            writer.writerows(rows)

    def _create(self, kind: str, path: str, start_time: datetime, session_id: str) -> Session:
        session = Session(kind=kind, session_id=session_id, start_time=start_time, path=path)
        try:
            os.makedirs(self.log_dir, exist_ok=True)
            if not os.path.exists(path):
                self._write_rows(path, [CSV_HEADER])
            logger.info(f"[SESSION] Started new log file: {path}")
        except OSError as e:
            logger.error(f"[SESSION] {LogWriteFailed(path, str(e)).message}")
        return session

    def start_new_log(self) -> Session:
        """
        Replace the global session with a fresh one.

        Returns:
            The new global Session
        """
        start_time = self._now()
        stamp = start_time.strftime("%Y%m%d-%H%M%S")
        path = os.path.join(self.log_dir, f"log_{stamp}.csv")
        session = self._create(GLOBAL_KIND, path, start_time, f"{GLOBAL_KIND}_{stamp}")
        with self._global_lock:
            previous = self._global
            self._global = session
        if previous is not None and previous.path != session.path:
            previous.closed = True
        return session

    def global_session(self) -> Session:
        """Current global session, created on first use."""
        with self._global_lock:
            session = self._global
        if session is None:
            session = self.start_new_log()
        return session

    def start_session(self, kind: str) -> Session:
        """
        Create a per-session log stream named by kind and start time.

        Args:
            kind: One of "single", "tone", "random", "playlist"

        Returns:
            New Session with its header row written
        """
        if kind not in SESSION_KINDS or kind == GLOBAL_KIND:
            raise ValueError(f"Invalid session kind: {kind}")

        start_time = self._now()
        stamp = f"{start_time.strftime('%Y%m%d-%H%M%S')}-{start_time.microsecond // 1000:03d}"
        base = f"log_{kind}_{stamp}"
        path = os.path.join(self.log_dir, f"{base}.csv")
        suffix = 1
        while os.path.exists(path):
            suffix += 1
            path = os.path.join(self.log_dir, f"{base}-{suffix}.csv")
        return self._create(kind, path, start_time, f"{kind}_{stamp}")

    def log_event(self, session: Session, event: LogEvent) -> bool:
        """
        Append one event to a session.

        Events for a global session are written to the current global log,
        so a /startnewlog during playback never loses the row.

        Args:
            session: Target session
            event: Event to append

        Returns:
            True if written, False if rejected or the write failed
        """
        if session.kind == GLOBAL_KIND:
            session = self.global_session()
        if session.closed:
            logger.warning(f"[SESSION] Dropping event for closed session {session.session_id}: {event.item_label}")
            return False
        try:
            self._write_rows(session.path, [event.to_row()])
        except OSError as e:
            logger.error(f"[SESSION] {LogWriteFailed(session.path, str(e)).message}")
            return False
        logger.debug(f"[SESSION] Appended {event.status} {event.item_label} to {session.path}")
        return True

    def close_session(self, session: Session) -> None:
        session.closed = True


def now_ns() -> int:
    """Wall-clock time in nanoseconds since the epoch."""
    return time.time_ns()

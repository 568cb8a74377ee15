"""On-disk storage for exercise session snapshots."""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Protocol

from loguru import logger


class SessionStore(Protocol):
    """Where session snapshots end up.

    save() must be idempotent and must drop a snapshot whose version is
    not newer than the last one it kept for that session.
    """

    def save(self, snapshot: dict, version: int, final: bool = False) -> bool: ...


class JsonSessionStore:
    """Keeps the latest snapshot of each session as a JSON file.

    Writes for the same session are serialized; an out-of-order snapshot
    (version <= last written) is discarded, so the newest state wins. Once
    a final snapshot is written the session file is never replaced.
    """

    def __init__(self, save_directory: str | Path = "sessions"):
        """Initialize the store.

        Args:
            save_directory: Directory to keep session files in
        """
        self.save_directory = Path(save_directory)
        self.save_directory.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._versions: dict[str, int] = {}
        self._finals: set[str] = set()

    def _path(self, session_id: str) -> Path:
        return self.save_directory / f"{session_id}.json"

    def _known_version(self, session_id: str) -> int:
        # Falls back to the file so a fresh store honours earlier writes
        if session_id not in self._versions:
            data = self.load_session(session_id) or {}
            self._versions[session_id] = data.get("version", 0)
            if data.get("final"):
                self._finals.add(session_id)
        return self._versions[session_id]

    def last_version(self, session_id: str) -> int:
        """Version of the last snapshot written for a session (0 if none)."""
        with self._lock:
            return self._known_version(session_id)

    def save(self, snapshot: dict, version: int, final: bool = False) -> bool:
        """Write a session snapshot.

        Args:
            snapshot: Session data from ExerciseSession.to_dict()
            version: Monotonic version of this snapshot
            final: Whether this is the closing write for the session

        Returns:
            True if written, False if discarded as stale
        """
        session_id = snapshot["session_id"]

        with self._lock:
            last = self._known_version(session_id)
            if session_id in self._finals:
                logger.warning(f"Discarding snapshot v{version} of {session_id}: session already closed")
                return False
            if version <= last:
                logger.debug(f"Discarding stale snapshot v{version} of {session_id} (have v{last})")
                return False

            output = {
                "version": version,
                "final": final,
                "saved_at": datetime.now().isoformat(),
                **snapshot,
            }

            path = self._path(session_id)
            tmp_path = path.with_suffix(".json.tmp")
            with open(tmp_path, "w") as f:
                json.dump(output, f, indent=2, default=str)
            tmp_path.replace(path)

            self._versions[session_id] = version
            if final:
                self._finals.add(session_id)

        return True

    def list_sessions(self) -> list[dict]:
        """List saved sessions, newest first.

        Returns:
            Session summaries (id, exercise, status, stage, duration, date)
        """
        sessions = []

        for filepath in sorted(self.save_directory.glob("*.json"), reverse=True):
            try:
                with open(filepath) as f:
                    data = json.load(f)
            except (json.JSONDecodeError, IOError):
                logger.warning(f"Skipping unreadable session file {filepath}")
                continue

            sessions.append({
                "session_id": data.get("session_id", filepath.stem),
                "config_id": data.get("config_id"),
                "status": data.get("status"),
                "current_stage": data.get("current_stage"),
                "total_duration": data.get("total_duration"),
                "date": data.get("started_at") or data.get("saved_at", "unknown"),
                "final": data.get("final", False),
                "filepath": str(filepath),
            })

        sessions.sort(key=lambda s: s["date"] or "", reverse=True)
        return sessions

    def load_session(self, session_id: str) -> dict | None:
        """Load a saved session snapshot, or None if not found."""
        filepath = self._path(session_id)

        if not filepath.exists():
            return None

        with open(filepath) as f:
            return json.load(f)

    def load_open_session(self, config_id: str) -> dict | None:
        """Most recent unfinished session for an exercise, if any."""
        for summary in self.list_sessions():
            if summary["config_id"] != config_id:
                continue
            if summary["status"] in ("completed", "abandoned"):
                continue
            return self.load_session(summary["session_id"])
        return None

    def delete_session(self, session_id: str) -> bool:
        """Delete a saved session.

        Returns:
            True if deleted, False if not found
        """
        filepath = self._path(session_id)

        with self._lock:
            self._versions.pop(session_id, None)
            self._finals.discard(session_id)
            if not filepath.exists():
                return False
            filepath.unlink()

        return True


def format_duration(seconds: float) -> str:
    """Format duration as human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string like "5m 30s" or "1h 15m"
    """
    if seconds < 60:
        return f"{int(seconds)}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"

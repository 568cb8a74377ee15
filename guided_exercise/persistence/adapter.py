"""Debounced snapshotting between the session engine and a store."""

import threading

from loguru import logger

from .store import SessionStore


class SessionPersistenceAdapter:
    """Turns the engine's per-mutation snapshots into debounced store writes.

    Every snapshot gets the next version number for its session. A pending
    snapshot is written once no newer one has arrived for `debounce_sec`,
    so a burst collapses into one write of the newest state. commit()
    writes the closing snapshot once, flagged final, and forgets the
    session. Store failures are logged and never reach the caller.
    """

    def __init__(self, store: SessionStore, debounce_sec: float = 2.0):
        """Initialize the adapter.

        Args:
            store: Where snapshots are written
            debounce_sec: Quiet period before a pending snapshot is
                written; 0 writes every snapshot immediately
        """
        self.store = store
        self.debounce_sec = debounce_sec

        self._lock = threading.Lock()
        self._versions: dict[str, int] = {}
        self._pending: dict[str, tuple[dict, int]] = {}
        self._timers: dict[str, threading.Timer] = {}

    def _next_version(self, session_id: str) -> int:
        if session_id not in self._versions:
            last_version = getattr(self.store, "last_version", None)
            self._versions[session_id] = last_version(session_id) if last_version else 0
        self._versions[session_id] += 1
        return self._versions[session_id]

    def snapshot(self, data: dict) -> None:
        """Queue a snapshot of an active session."""
        session_id = data["session_id"]

        with self._lock:
            self._pending[session_id] = (data, self._next_version(session_id))

            if self.debounce_sec > 0:
                # Each snapshot restarts the quiet period
                previous = self._timers.pop(session_id, None)
                if previous is not None:
                    previous.cancel()
                timer = threading.Timer(self.debounce_sec, self._on_quiet, args=(session_id,))
                timer.daemon = True
                self._timers[session_id] = timer
                timer.start()
                return

        self._write_pending(session_id)

    def flush(self, session_id: str | None = None) -> None:
        """Write pending snapshots now instead of waiting out the debounce."""
        with self._lock:
            session_ids = [session_id] if session_id else list(self._pending)

        for sid in session_ids:
            self._write_pending(sid)

    def commit(self, data: dict) -> None:
        """Write the closing snapshot of a completed or abandoned session."""
        session_id = data["session_id"]

        with self._lock:
            timer = self._timers.pop(session_id, None)
            if timer is not None:
                timer.cancel()
            self._pending.pop(session_id, None)
            version = self._next_version(session_id)
            self._versions.pop(session_id, None)

        self._save(data, version, final=True)

    def close(self) -> None:
        """Flush whatever is pending and stop all timers."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        self.flush()

    def _on_quiet(self, session_id: str) -> None:
        with self._lock:
            # Superseded by a newer snapshot's timer
            if self._timers.get(session_id) is not threading.current_thread():
                return
        self._write_pending(session_id)

    def _write_pending(self, session_id: str) -> None:
        with self._lock:
            timer = self._timers.pop(session_id, None)
            pending = self._pending.pop(session_id, None)

        if timer is not None:
            timer.cancel()
        if pending is None:
            return

        data, version = pending
        self._save(data, version, final=False)

    def _save(self, data: dict, version: int, final: bool) -> None:
        session_id = data["session_id"]
        try:
            self.store.save(data, version, final=final)
        except Exception:
            logger.exception(f"Failed to save session {session_id} v{version}")

"""Session snapshot persistence."""

from .adapter import SessionPersistenceAdapter
from .store import JsonSessionStore, SessionStore, format_duration

__all__ = [
    "SessionPersistenceAdapter",
    "JsonSessionStore",
    "SessionStore",
    "format_duration",
]

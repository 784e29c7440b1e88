"""
Repository layer exports.
"""

from db.repositories.errors import SessionNotFoundError, SessionPersistenceError, SessionStoreError
from db.repositories.session_store import FileSessionStore, InMemorySessionStore, SessionStore
from db.repositories.types import UploadSession, UploadStatus

__all__ = [
    "FileSessionStore",
    "InMemorySessionStore",
    "SessionNotFoundError",
    "SessionPersistenceError",
    "SessionStore",
    "SessionStoreError",
    "UploadSession",
    "UploadStatus",
]

"""
Repository-layer exceptions for upload session flows.
"""

from __future__ import annotations


class SessionStoreError(Exception):
    """Base exception for upload session store failures."""


class SessionNotFoundError(SessionStoreError):
    """Raised when a session id is unknown or its session has expired."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Upload session '{session_id}' was not found or has expired.")
        self.session_id = session_id


class SessionPersistenceError(SessionStoreError):
    """Raised when writing or deleting a session fails."""

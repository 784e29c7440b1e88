"""
Key-value backends for upload sessions.

Sessions expire after a fixed idle timeout that is pushed forward on every
read. Expired sessions are removed when they are read and reported as not
found.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, Protocol

from db.repositories.errors import SessionNotFoundError, SessionPersistenceError
from db.repositories.types import UploadSession, UploadStatus

logger = logging.getLogger(__name__)

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(Protocol):
    """
    Storage contract used by the import session service.
    """

    def create(
        self,
        *,
        original_filename: str,
        file_size: int,
        country: str,
        financial_cycle: str,
        headers: list[str],
        records: list[dict[str, str]],
        master_data: dict[str, Any],
        business_unit: str | None = None,
    ) -> UploadSession:
        ...

    def get(self, session_id: str) -> UploadSession:
        ...

    def put(self, session: UploadSession) -> None:
        ...

    def delete(self, session_id: str) -> bool:
        ...

    def purge_expired(self) -> int:
        ...


class _ExpiringSessionStore:
    """
    TTL bookkeeping shared by the concrete backends.
    """

    def __init__(
        self,
        *,
        timeout_hours: float = 6.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ttl = timedelta(hours=timeout_hours)
        self._clock = clock

    # Backend hooks ------------------------------------------------------

    def _read(self, session_id: str) -> UploadSession | None:
        raise NotImplementedError

    def _write(self, session: UploadSession) -> None:
        raise NotImplementedError

    def _remove(self, session_id: str) -> bool:
        raise NotImplementedError

    def _session_ids(self) -> Iterator[str]:
        raise NotImplementedError

    # Public API ---------------------------------------------------------

    def create(
        self,
        *,
        original_filename: str,
        file_size: int,
        country: str,
        financial_cycle: str,
        headers: list[str],
        records: list[dict[str, str]],
        master_data: dict[str, Any],
        business_unit: str | None = None,
    ) -> UploadSession:
        now = self._clock()
        session = UploadSession(
            id=uuid.uuid4().hex,
            original_filename=original_filename,
            file_size=file_size,
            record_count=len(records),
            country=country,
            financial_cycle=financial_cycle,
            business_unit=business_unit,
            created_at=now,
            expires_at=now + self._ttl,
            last_accessed_at=now,
            status=UploadStatus.UPLOADED,
            headers=list(headers),
            records=list(records),
            master_data=master_data,
        )
        self._write(session)
        logger.info("Created upload session %s (%d records)", session.id, session.record_count)
        return session

    def get(self, session_id: str) -> UploadSession:
        """
        Return a live session and extend its expiry.
        """

        if not _SESSION_ID_PATTERN.match(session_id):
            raise SessionNotFoundError(session_id)
        session = self._read(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        now = self._clock()
        if session.expires_at <= now:
            self._remove(session_id)
            logger.info("Upload session %s expired at %s", session_id, session.expires_at.isoformat())
            raise SessionNotFoundError(session_id)

        session.last_accessed_at = now
        session.expires_at = now + self._ttl
        self._write(session)
        return session

    def put(self, session: UploadSession) -> None:
        session.last_accessed_at = self._clock()
        session.expires_at = session.last_accessed_at + self._ttl
        self._write(session)

    def delete(self, session_id: str) -> bool:
        if not _SESSION_ID_PATTERN.match(session_id):
            return False
        return self._remove(session_id)

    def purge_expired(self) -> int:
        now = self._clock()
        purged = 0
        for session_id in list(self._session_ids()):
            session = self._read(session_id)
            if session is not None and session.expires_at <= now:
                if self._remove(session_id):
                    purged += 1
        if purged:
            logger.info("Purged %d expired upload sessions", purged)
        return purged


class InMemorySessionStore(_ExpiringSessionStore):
    """
    Process-local store, used in tests and single-worker development.
    """

    def __init__(
        self,
        *,
        timeout_hours: float = 6.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(timeout_hours=timeout_hours, clock=clock)
        self._sessions: dict[str, dict[str, Any]] = {}

    def _read(self, session_id: str) -> UploadSession | None:
        payload = self._sessions.get(session_id)
        return UploadSession.from_dict(payload) if payload is not None else None

    def _write(self, session: UploadSession) -> None:
        self._sessions[session.id] = json.loads(json.dumps(session.to_dict(), default=str))

    def _remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def _session_ids(self) -> Iterator[str]:
        return iter(self._sessions.keys())


class FileSessionStore(_ExpiringSessionStore):
    """
    One JSON document per session under `root_dir`.
    """

    def __init__(
        self,
        root_dir: str | Path = "data/sessions",
        *,
        timeout_hours: float = 6.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(timeout_hours=timeout_hours, clock=clock)
        self._root_dir = Path(root_dir)

    def _path(self, session_id: str) -> Path:
        return self._root_dir / f"{session_id}.json"

    def _read(self, session_id: str) -> UploadSession | None:
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return UploadSession.from_dict(payload)
        except (OSError, ValueError, KeyError) as exc:
            logger.warning("Discarding unreadable upload session %s: %s", session_id, exc)
            self._remove(session_id)
            return None

    def _write(self, session: UploadSession) -> None:
        self._root_dir.mkdir(parents=True, exist_ok=True)
        target = self._path(session.id)
        tmp_path = target.with_suffix(".json.tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(session.to_dict(), handle, default=str)
            tmp_path.replace(target)
        except OSError as exc:
            raise SessionPersistenceError(f"Failed to write upload session '{session.id}'.") from exc
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

    def _remove(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as exc:
            raise SessionPersistenceError(f"Failed to delete upload session '{session_id}'.") from exc
        return True

    def _session_ids(self) -> Iterator[str]:
        if not self._root_dir.exists():
            return iter(())
        return (path.stem for path in self._root_dir.glob("*.json"))

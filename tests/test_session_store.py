"""
tests/test_session_store.py

Upload session backends: creation, TTL extension, expiry and persistence.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from db.repositories import (
    FileSessionStore,
    InMemorySessionStore,
    SessionNotFoundError,
    UploadStatus,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(params=["memory", "file"])
def store(request: pytest.FixtureRequest, tmp_path: Path, clock: FakeClock):
    if request.param == "memory":
        return InMemorySessionStore(timeout_hours=6, clock=clock)
    return FileSessionStore(tmp_path / "sessions", timeout_hours=6, clock=clock)


def _create(store):
    return store.create(
        original_filename="plans.csv",
        file_size=120,
        country="Mexico",
        financial_cycle="ABP 2025",
        business_unit="CPD",
        headers=["Campaign", "Range"],
        records=[{"Campaign": "Elvive Launch", "Range": "Elvive"}],
        master_data={"ranges": ["Elvive"]},
    )


def test_create_and_get(store, clock: FakeClock) -> None:
    created = _create(store)

    loaded = store.get(created.id)

    assert loaded.id == created.id
    assert loaded.status == UploadStatus.UPLOADED
    assert loaded.record_count == 1
    assert loaded.records == [{"Campaign": "Elvive Launch", "Range": "Elvive"}]
    assert loaded.master_data == {"ranges": ["Elvive"]}
    assert loaded.expires_at == clock.now + timedelta(hours=6)


def test_get_extends_expiry(store, clock: FakeClock) -> None:
    created = _create(store)

    clock.advance(hours=5)
    store.get(created.id)
    clock.advance(hours=5)

    loaded = store.get(created.id)
    assert loaded.last_accessed_at == clock.now


def test_expired_session_is_removed_and_reported_missing(store, clock: FakeClock) -> None:
    created = _create(store)

    clock.advance(hours=6, seconds=1)

    with pytest.raises(SessionNotFoundError):
        store.get(created.id)
    assert store.delete(created.id) is False


def test_put_persists_changes(store) -> None:
    session = _create(store)
    session.status = UploadStatus.VALIDATED
    session.issues = [{"row_index": 0, "column_name": "Campaign", "severity": "warning", "message": "m"}]

    store.put(session)

    loaded = store.get(session.id)
    assert loaded.status == UploadStatus.VALIDATED
    assert loaded.issues is not None and loaded.issues[0]["column_name"] == "Campaign"


def test_unknown_and_malformed_ids_are_not_found(store) -> None:
    with pytest.raises(SessionNotFoundError):
        store.get("does-not-exist")
    with pytest.raises(SessionNotFoundError):
        store.get("../../etc/passwd")


def test_delete(store) -> None:
    created = _create(store)

    assert store.delete(created.id) is True
    assert store.delete(created.id) is False
    with pytest.raises(SessionNotFoundError):
        store.get(created.id)


def test_purge_expired_keeps_live_sessions(store, clock: FakeClock) -> None:
    old = _create(store)
    clock.advance(hours=4)
    live = _create(store)
    clock.advance(hours=3)

    assert store.purge_expired() == 1
    assert store.get(live.id).id == live.id
    with pytest.raises(SessionNotFoundError):
        store.get(old.id)


class TestFileSessionStore:
    def test_one_json_document_per_session(self, tmp_path: Path, clock: FakeClock) -> None:
        store = FileSessionStore(tmp_path, clock=clock)
        created = _create(store)

        files = sorted(path.name for path in tmp_path.iterdir())
        assert files == [f"{created.id}.json"]
        payload = json.loads((tmp_path / f"{created.id}.json").read_text(encoding="utf-8"))
        assert payload["country"] == "Mexico"
        assert payload["business_unit"] == "CPD"

    def test_survives_new_store_instance(self, tmp_path: Path, clock: FakeClock) -> None:
        created = _create(FileSessionStore(tmp_path, clock=clock))

        loaded = FileSessionStore(tmp_path, clock=clock).get(created.id)

        assert loaded.original_filename == "plans.csv"

    def test_unreadable_document_is_discarded(self, tmp_path: Path, clock: FakeClock) -> None:
        store = FileSessionStore(tmp_path, clock=clock)
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(SessionNotFoundError):
            store.get("broken")
        assert not (tmp_path / "broken.json").exists()

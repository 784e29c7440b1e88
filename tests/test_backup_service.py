"""
tests/test_backup_service.py

Full-database copies and scoped game-plan JSON backups with restore.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.services.backup_service import (
    DatabaseBackupService,
    GamePlanBackupError,
    GamePlanBackupService,
    sanitize_name,
)
from db.models import GamePlan, MediaSubType
from tests.conftest import SeededMasterData, add_game_plans

FIXED_NOW = datetime(2025, 3, 4, 5, 6, 7, 890000, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Full-database backups
# ---------------------------------------------------------------------------


class TestDatabaseBackupService:
    def test_copies_database_with_dated_name(self, tmp_path: Path) -> None:
        database = tmp_path / "golden_rules.db"
        database.write_bytes(b"sqlite-bytes")
        service = DatabaseBackupService(
            database_path=database,
            backup_dir=tmp_path / "backups",
            clock=lambda: FIXED_NOW,
        )

        result = service.create_backup()

        assert result.success is True
        assert result.file_name == "golden_rules_backup_2025-03-04.db"
        assert Path(result.file_path or "").read_bytes() == b"sqlite-bytes"

    def test_missing_database_is_reported_not_raised(self, tmp_path: Path) -> None:
        service = DatabaseBackupService(database_path=tmp_path / "missing.db", backup_dir=tmp_path)

        result = service.create_backup()

        assert result.success is False
        assert result.error == "Database file not found"

    def test_non_sqlite_database_is_reported(self, tmp_path: Path) -> None:
        result = DatabaseBackupService(database_path=None, backup_dir=tmp_path).create_backup()

        assert result.success is False
        assert "SQLite" in (result.error or "")

    def test_prunes_oldest_by_modification_time(self, tmp_path: Path) -> None:
        backup_dir = tmp_path / "backups"
        backup_dir.mkdir()
        base = datetime(2025, 1, 1, tzinfo=timezone.utc).timestamp()
        for day in range(1, 6):
            path = backup_dir / f"golden_rules_backup_2025-01-0{day}.db"
            path.write_bytes(b"x")
            os.utime(path, (base + day * 86400, base + day * 86400))
        (backup_dir / "notes.txt").write_text("keep me", encoding="utf-8")
        service = DatabaseBackupService(database_path=None, backup_dir=backup_dir, max_backups=3)

        deleted = service.prune()

        assert deleted == 2
        assert [info.name for info in service.list_backups()] == [
            "golden_rules_backup_2025-01-05.db",
            "golden_rules_backup_2025-01-04.db",
            "golden_rules_backup_2025-01-03.db",
        ]
        assert (backup_dir / "notes.txt").exists()

    def test_list_backups_without_directory(self, tmp_path: Path) -> None:
        service = DatabaseBackupService(database_path=None, backup_dir=tmp_path / "nope")

        assert service.list_backups() == []


# ---------------------------------------------------------------------------
# Scoped game-plan backups
# ---------------------------------------------------------------------------


@pytest.fixture()
def backup_service(tmp_path: Path) -> GamePlanBackupService:
    return GamePlanBackupService(backup_dir=tmp_path / "game-plans", clock=lambda: FIXED_NOW)


def test_sanitize_name_keeps_letters_and_digits() -> None:
    assert sanitize_name("ABP 2025 / Q1-final") == "ABP2025Q1final"


class TestGamePlanBackup:
    def test_writes_scoped_json_backup(
        self,
        db_session: Session,
        seeded: SeededMasterData,
        backup_service: GamePlanBackupService,
    ) -> None:
        add_game_plans(db_session, seeded, count=3)
        add_game_plans(db_session, seeded, count=2, country="Colombia")

        path = backup_service.create_backup(
            db=db_session,
            country_id=seeded["Mexico"],
            financial_cycle_id=seeded["ABP 2025"],
            business_unit_id=seeded["CPD"],
            reason="import",
        )

        assert path.name == "game-plans-backup-Mexico-ABP2025-CPD-2025-03-04T05-06-07-890Z.json"
        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["countryName"] == "Mexico"
        assert payload["lastUpdateName"] == "ABP 2025"
        assert payload["businessUnitName"] == "CPD"
        assert payload["reason"] == "import"
        assert payload["recordCount"] == 3
        assert payload["backupFile"] == path.name
        first = payload["gamePlans"][0]
        assert first["campaign"] == {"id": seeded["Elvive Launch"], "name": "Elvive Launch"}
        assert first["media_sub_type"]["media_type"]["name"] == "TV"
        assert first["start_date"] == "2025-03-01"

    def test_backup_without_business_unit_omits_bu_keys(
        self,
        db_session: Session,
        seeded: SeededMasterData,
        backup_service: GamePlanBackupService,
    ) -> None:
        path = backup_service.create_backup(
            db=db_session,
            country_id=seeded["Mexico"],
            financial_cycle_id=seeded["ABP 2025"],
        )

        payload = json.loads(path.read_text(encoding="utf-8"))
        assert "businessUnitId" not in payload
        assert payload["recordCount"] == 0
        assert path.name.startswith("game-plans-backup-Mexico-ABP2025-2025")

    def test_unknown_scope_raises(
        self,
        db_session: Session,
        seeded: SeededMasterData,
        backup_service: GamePlanBackupService,
    ) -> None:
        with pytest.raises(GamePlanBackupError):
            backup_service.create_backup(db=db_session, country_id=9999, financial_cycle_id=seeded["ABP 2025"])

    def test_backup_by_name(
        self,
        db_session: Session,
        seeded: SeededMasterData,
        backup_service: GamePlanBackupService,
    ) -> None:
        add_game_plans(db_session, seeded, count=1)

        path = backup_service.create_backup_by_name(
            db=db_session, country="mexico", financial_cycle="abp 2025", business_unit="cpd"
        )

        assert json.loads(path.read_text(encoding="utf-8"))["recordCount"] == 1
        with pytest.raises(GamePlanBackupError):
            backup_service.create_backup_by_name(db=db_session, country="Atlantis", financial_cycle="ABP 2025")

    def test_list_backups_newest_first(self, tmp_path: Path) -> None:
        service = GamePlanBackupService(backup_dir=tmp_path)
        (tmp_path / "game-plans-backup-A-B-2025-03-04T05-06-07-890Z.json").write_text("{}", encoding="utf-8")
        (tmp_path / "game-plans-backup-A-B-2025-03-04T05-06-12-890Z.json").write_text("{}", encoding="utf-8")

        assert service.list_backups() == [
            "game-plans-backup-A-B-2025-03-04T05-06-12-890Z.json",
            "game-plans-backup-A-B-2025-03-04T05-06-07-890Z.json",
        ]


class TestGamePlanRestore:
    def test_rows_with_deleted_references_are_reported_and_skipped(
        self,
        db_session: Session,
        seeded: SeededMasterData,
        backup_service: GamePlanBackupService,
    ) -> None:
        add_game_plans(db_session, seeded, count=8)
        add_game_plans(db_session, seeded, count=2, media_sub_type="Paid TV")
        path = backup_service.create_backup(
            db=db_session,
            country_id=seeded["Mexico"],
            financial_cycle_id=seeded["ABP 2025"],
            business_unit_id=seeded["CPD"],
        )
        for plan in db_session.scalars(select(GamePlan)).all():
            db_session.delete(plan)
        db_session.delete(db_session.get(MediaSubType, seeded["Paid TV"]))
        db_session.commit()

        report = backup_service.restore_backup(db=db_session, backup_file=path.name)

        assert report.succeeded == 8
        assert report.failed == 2
        assert all("media_sub_type_id" in (item.error or "") for item in report.failures)
        restored = db_session.scalars(select(GamePlan)).all()
        assert len(restored) == 8
        assert {plan.total_budget for plan in restored} == {1000.0 + index for index in range(8)}
        assert all(plan.created_by == "planner@example.com" for plan in restored)

    def test_missing_backup_file_raises(self, db_session: Session, backup_service: GamePlanBackupService) -> None:
        with pytest.raises(GamePlanBackupError, match="not found"):
            backup_service.restore_backup(db=db_session, backup_file="nope.json")

    def test_malformed_backup_file_raises(
        self, db_session: Session, backup_service: GamePlanBackupService
    ) -> None:
        backup_service.backup_dir.mkdir(parents=True)
        (backup_service.backup_dir / "bad.json").write_text('{"gamePlans": "oops"}', encoding="utf-8")

        with pytest.raises(GamePlanBackupError):
            backup_service.restore_backup(db=db_session, backup_file="bad.json")

"""
tests/test_import_session_service.py

Upload -> validate -> import workflow against the seeded SQLite database.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.config import AutoCreateSettings
from app.domain.import_records import ValidationContext
from app.mappers.header_mapper import normalize_records
from app.services.backup_service import GamePlanBackupError, GamePlanBackupService
from app.services.csv_ingestion_service import CSVIngestionError
from app.services.game_plan_import_service import (
    GamePlanImportService,
    GamePlanPersistenceError,
    ImportScopeError,
)
from app.services.import_session_service import (
    ImportBlockedError,
    ImportSessionService,
    MissingUploadContextError,
)
from db.base import EntityStatus
from db.models import Campaign, Category, GamePlan, Range
from db.repositories import InMemorySessionStore, SessionNotFoundError, UploadStatus
from tests.conftest import SeededMasterData, add_game_plans, csv_bytes, make_validator, row


def _count_plans(db: Session, country_id: int) -> int:
    return db.scalar(select(func.count(GamePlan.id)).where(GamePlan.country_id == country_id)) or 0


@pytest.fixture()
def backup_service(tmp_path: Path) -> GamePlanBackupService:
    return GamePlanBackupService(backup_dir=tmp_path / "game-plans")


@pytest.fixture()
def importer(backup_service: GamePlanBackupService) -> GamePlanImportService:
    return GamePlanImportService(backup_service=backup_service, auto_create_settings=AutoCreateSettings())


@pytest.fixture()
def service(importer: GamePlanImportService) -> ImportSessionService:
    return ImportSessionService(
        store=InMemorySessionStore(),
        validator=make_validator(),
        importer=importer,
        max_upload_bytes=1024 * 1024,
    )


def _upload(service: ImportSessionService, db: Session, rows: list[dict[str, str]], **context: str):
    return service.upload(
        db=db,
        content=csv_bytes(rows),
        filename="plans.csv",
        country=context.get("country", "Mexico"),
        financial_cycle=context.get("financial_cycle", "ABP 2025"),
        business_unit=context.get("business_unit", "CPD"),
    )


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


class TestUpload:
    def test_requires_country_and_cycle(self, service: ImportSessionService, db_session: Session) -> None:
        with pytest.raises(MissingUploadContextError):
            service.upload(
                db=db_session,
                content=csv_bytes([row()]),
                filename="plans.csv",
                country="Mexico",
                financial_cycle="  ",
            )

    def test_rejects_oversized_file(self, importer: GamePlanImportService, db_session: Session) -> None:
        service = ImportSessionService(
            store=InMemorySessionStore(),
            validator=make_validator(),
            importer=importer,
            max_upload_bytes=10,
        )

        with pytest.raises(CSVIngestionError, match="too large"):
            _upload(service, db_session, [row()])

    def test_opens_session_with_snapshot(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        session = _upload(service, db_session, [row(), row(Campaign="Elvive Summer")])

        assert session.record_count == 2
        assert session.status == UploadStatus.UPLOADED
        assert session.business_unit == "CPD"
        assert "Elvive Launch" in session.master_data["campaigns"]


# ---------------------------------------------------------------------------
# Validate and fetch
# ---------------------------------------------------------------------------


class TestValidate:
    def test_validate_caches_issues(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        session = _upload(service, db_session, [row(), row(Media="Radio")])

        outcome = service.validate(session_id=session.id)

        assert outcome.summary.critical == 1
        assert outcome.summary.can_import is False
        assert outcome.session.status == UploadStatus.VALIDATED
        stored = service.store.get(session.id)
        assert stored.issues is not None and stored.issues[0]["column_name"] == "Media"

    def test_cached_issues_are_reused_unless_forced(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        session = _upload(service, db_session, [row(Media="Radio")])
        service.validate(session_id=session.id)
        stored = service.store.get(session.id)
        stored.issues = []
        service.store.put(stored)

        assert service.validate(session_id=session.id).summary.total == 0
        assert service.validate(session_id=session.id, force=True).summary.total == 1

    def test_get_session_view(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        session = _upload(service, db_session, [row()])

        before = service.get_session(session.id)
        service.validate(session_id=session.id)
        after = service.get_session(session.id)

        assert before.issues is None and before.summary is None
        assert after.issues == [] and after.summary is not None and after.summary.can_import
        assert after.master_data_counts["campaigns"] == 2

    def test_unknown_session(self, service: ImportSessionService) -> None:
        with pytest.raises(SessionNotFoundError):
            service.validate(session_id="missing")


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------


class TestCommit:
    def test_replaces_scope_behind_backup_and_auto_creates(
        self,
        service: ImportSessionService,
        backup_service: GamePlanBackupService,
        db_session: Session,
        seeded: SeededMasterData,
    ) -> None:
        add_game_plans(db_session, seeded, count=3)
        add_game_plans(db_session, seeded, count=2, country="Colombia")
        session = _upload(service, db_session, [row(), row(Campaign="Elvive Summer", Media_Subtype="Paid TV")])

        report = service.commit(db=db_session, session_id=session.id, submitted_by="planner@example.com")

        assert report.imported == 2
        assert report.deleted == 3
        assert report.rows.failed == 0
        assert report.auto_created_campaigns == ["Elvive Summer"]
        assert report.auto_created_ranges == []
        assert _count_plans(db_session, seeded["Mexico"]) == 2
        assert _count_plans(db_session, seeded["Colombia"]) == 2

        backup = json.loads((backup_service.backup_dir / (report.backup_file or "")).read_text(encoding="utf-8"))
        assert backup["recordCount"] == 3
        assert backup["reason"] == "import"

        created = db_session.scalars(select(Campaign).where(Campaign.name == "Elvive Summer")).one()
        assert created.status == EntityStatus.PENDING_REVIEW
        assert created.created_by == "import_auto"
        assert created.original_name == "Elvive Summer"
        assert created.usage_count == 1
        assert created.range_id == seeded["Elvive"]
        assert "Auto-created during import from plans.csv on " in (created.notes or "")

        stored = service.store.get(session.id)
        assert stored.status == UploadStatus.IMPORTED
        assert stored.import_result is not None and stored.import_result["imported"] == 2

    def test_imported_rows_carry_parsed_values(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        session = _upload(service, db_session, [row()])

        service.commit(db=db_session, session_id=session.id, submitted_by="planner@example.com")

        plan = db_session.scalars(select(GamePlan)).one()
        assert plan.campaign_id == seeded["Elvive Launch"]
        assert plan.media_sub_type_id == seeded["Open TV"]
        assert plan.business_unit_id == seeded["CPD"]
        assert plan.sub_region_id == seeded["Central America"]
        assert plan.pm_type_id == seeded["Always On"]
        assert plan.total_budget == 3000.0
        assert plan.q1_budget == 3000.0
        assert plan.q2_budget is None
        assert plan.reach_1_plus == 65.0
        assert plan.reach_3_plus == pytest.approx(40.0)
        assert plan.year == 2025
        assert plan.created_by == "planner@example.com"

    def test_new_range_is_created_under_row_category(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        rows = [
            row(Range="Elvive Dream", Campaign="Dream Launch"),
            row(Range="Elvive Dream", Campaign="Dream Launch", Media_Subtype="Paid TV"),
        ]
        session = _upload(service, db_session, rows)

        report = service.commit(db=db_session, session_id=session.id, submitted_by="planner@example.com")

        assert report.auto_created_ranges == ["Elvive Dream"]
        assert report.auto_created_campaigns == ["Dream Launch"]
        new_range = db_session.scalars(select(Range).where(Range.name == "Elvive Dream")).one()
        assert new_range.status == EntityStatus.PENDING_REVIEW
        assert new_range.usage_count == 2
        assert [category.name for category in new_range.categories] == ["Hair Care"]
        campaign = db_session.scalars(select(Campaign).where(Campaign.name == "Dream Launch")).one()
        assert campaign.range_id == new_range.id
        assert db_session.get(Category, seeded["Hair Care"]) is not None

    def test_critical_issues_block_without_changes(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        add_game_plans(db_session, seeded, count=3)
        session = _upload(service, db_session, [row(), row(Media="Radio")])

        with pytest.raises(ImportBlockedError) as ctx:
            service.commit(db=db_session, session_id=session.id, submitted_by="planner@example.com")

        assert ctx.value.summary is not None and ctx.value.summary.critical == 1
        assert ctx.value.to_dict()["summary"]["can_import"] is False
        assert _count_plans(db_session, seeded["Mexico"]) == 3
        assert service.store.get(session.id).status == UploadStatus.VALIDATED

    def test_duplicate_rows_block_import(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        session = _upload(service, db_session, [row(), row()])

        outcome = service.validate(session_id=session.id)

        assert outcome.summary.critical == 1
        stored = service.store.get(session.id)
        assert stored.issues is not None
        assert stored.issues[0]["row_index"] == 1
        assert stored.issues[0]["message"].startswith("Duplicate of row 1:")

    def test_new_campaign_split_across_ranges_blocks_import(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        rows = [
            row(Campaign="Brand New"),
            row(Campaign="Brand New", Category="Skin Care", Range="Revitalift"),
        ]
        session = _upload(service, db_session, rows)

        with pytest.raises(ImportBlockedError) as ctx:
            service.commit(db=db_session, session_id=session.id, submitted_by="planner@example.com")

        assert ctx.value.summary is not None and ctx.value.summary.critical == 1
        assert db_session.scalars(select(Campaign).where(Campaign.name == "Brand New")).first() is None

    def test_row_from_other_business_unit_blocks_import(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        session = _upload(service, db_session, [row(Business_Unit="LDB")])

        with pytest.raises(ImportBlockedError):
            service.commit(db=db_session, session_id=session.id, submitted_by="planner@example.com")

        stored = service.store.get(session.id)
        assert stored.issues is not None
        assert [issue["column_name"] for issue in stored.issues] == ["Business Unit"]

    def test_commit_revalidates_against_fresh_master_data(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        session = _upload(service, db_session, [row()])
        assert service.validate(session_id=session.id).summary.can_import

        campaign = db_session.get(Campaign, seeded["Elvive Launch"])
        assert campaign is not None
        campaign.status = EntityStatus.ARCHIVED
        db_session.commit()

        with pytest.raises(ImportBlockedError):
            service.commit(db=db_session, session_id=session.id, submitted_by="planner@example.com")

    def test_backup_failure_blocks_import(
        self, importer: GamePlanImportService, db_session: Session, seeded: SeededMasterData, tmp_path: Path
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        service = ImportSessionService(
            store=InMemorySessionStore(),
            validator=make_validator(),
            importer=GamePlanImportService(
                backup_service=GamePlanBackupService(backup_dir=blocker / "game-plans"),
                auto_create_settings=AutoCreateSettings(),
            ),
            max_upload_bytes=1024 * 1024,
        )
        add_game_plans(db_session, seeded, count=3)
        session = _upload(service, db_session, [row()])

        with pytest.raises(GamePlanBackupError):
            service.commit(db=db_session, session_id=session.id, submitted_by="planner@example.com")

        assert _count_plans(db_session, seeded["Mexico"]) == 3
        stored = service.store.get(session.id)
        assert stored.status == UploadStatus.FAILED
        assert stored.error

    def test_second_commit_is_blocked(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        session = _upload(service, db_session, [row()])
        service.commit(db=db_session, session_id=session.id, submitted_by="planner@example.com")

        with pytest.raises(ImportBlockedError, match="already been imported"):
            service.commit(db=db_session, session_id=session.id, submitted_by="planner@example.com")

    def test_commit_can_delete_session(
        self, service: ImportSessionService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        session = _upload(service, db_session, [row()])

        service.commit(
            db=db_session,
            session_id=session.id,
            submitted_by="planner@example.com",
            delete_session=True,
        )

        with pytest.raises(SessionNotFoundError):
            service.get_session(session.id)


# ---------------------------------------------------------------------------
# Import service edges
# ---------------------------------------------------------------------------


class TestGamePlanImportService:
    def test_unknown_scope_is_rejected(
        self, importer: GamePlanImportService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        with pytest.raises(ImportScopeError, match="Business unit 'PPD'"):
            importer.import_records(
                db=db_session,
                records=normalize_records([row()]),
                context=ValidationContext(country="Mexico", financial_cycle="ABP 2025", business_unit="PPD"),
                submitted_by="planner@example.com",
                source_name="plans.csv",
            )

    def test_rows_are_written_into_the_upload_business_unit(
        self, importer: GamePlanImportService, db_session: Session, seeded: SeededMasterData
    ) -> None:
        context = ValidationContext(country="Mexico", financial_cycle="ABP 2025", business_unit="CPD")

        for _ in range(2):
            importer.import_records(
                db=db_session,
                records=normalize_records([row(Business_Unit="LDB")]),
                context=context,
                submitted_by="planner@example.com",
                source_name="plans.csv",
            )

        plan = db_session.scalars(select(GamePlan)).one()
        assert plan.business_unit_id == seeded["CPD"]

    def test_persistence_failure_rolls_back_delete(
        self,
        importer: GamePlanImportService,
        db_session: Session,
        seeded: SeededMasterData,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        add_game_plans(db_session, seeded, count=3)

        def _fail(self, rows):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr("app.services.game_plan_import_service.GamePlanRepository.add_all", _fail)

        with pytest.raises(GamePlanPersistenceError):
            importer.import_records(
                db=db_session,
                records=normalize_records([row(Campaign="Elvive Summer")]),
                context=ValidationContext(country="Mexico", financial_cycle="ABP 2025", business_unit="CPD"),
                submitted_by="planner@example.com",
                source_name="plans.csv",
            )

        assert _count_plans(db_session, seeded["Mexico"]) == 3
        assert db_session.scalars(select(Campaign).where(Campaign.name == "Elvive Summer")).first() is None

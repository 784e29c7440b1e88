"""
Create, list and restore game-plan backups from the command line.

    python -m scripts.game_plan_backups backup --country Mexico --cycle "ABP 2025"
    python -m scripts.game_plan_backups list
    python -m scripts.game_plan_backups restore game-plans-backup-Mexico-ABP2025-....json
    python -m scripts.game_plan_backups database-backup
"""

from __future__ import annotations

import argparse
import json
import logging

from app.services.backup_service import (
    GamePlanBackupError,
    get_database_backup_service,
    get_game_plan_backup_service,
)
from db.session import SessionLocal


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage game-plan and database backups.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    backup = subparsers.add_parser("backup", help="Back up the game plans of one scope.")
    backup.add_argument("--country", required=True)
    backup.add_argument("--cycle", dest="financial_cycle", required=True, help="Financial cycle name.")
    backup.add_argument("--business-unit", dest="business_unit", default=None)
    backup.add_argument("--reason", default="manual")

    subparsers.add_parser("list", help="List game-plan backup files, newest first.")

    restore = subparsers.add_parser("restore", help="Re-insert the rows of a game-plan backup.")
    restore.add_argument("backup_file", help="Backup file name or path.")

    subparsers.add_parser("database-backup", help="Copy the SQLite database into the backup directory.")
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    args = _build_parser().parse_args(argv)

    if args.command == "database-backup":
        result = get_database_backup_service().create_backup()
        print(json.dumps({"success": result.success, "file": result.file_name, "error": result.error}, indent=2))
        return 0 if result.success else 1

    service = get_game_plan_backup_service()

    if args.command == "list":
        print(json.dumps(service.list_backups(), indent=2))
        return 0

    try:
        with SessionLocal() as db:
            if args.command == "backup":
                path = service.create_backup_by_name(
                    db=db,
                    country=args.country,
                    financial_cycle=args.financial_cycle,
                    business_unit=args.business_unit,
                    reason=args.reason,
                )
                print(json.dumps({"backup_file": path.name}, indent=2))
                return 0

            report = service.restore_backup(db=db, backup_file=args.backup_file)
    except GamePlanBackupError as exc:
        print(json.dumps({"error": str(exc)}, indent=2))
        return 1

    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())

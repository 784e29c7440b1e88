"""
db/config.py

Database URL resolution from the process environment and `.env` files.
"""

from __future__ import annotations

import os
from pathlib import Path

from sqlalchemy.engine import make_url

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_FILES = (".env", ".env.local")
DEFAULT_SQLITE_URL = "sqlite:///prisma/golden_rules.db"
CLOUD_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files(root: Path = PROJECT_ROOT) -> None:
    """
    Copy KEY=VALUE pairs from `.env` then `.env.local` into os.environ.

    Variables already set in the process win over both files.
    """

    for filename in ENV_FILES:
        env_path = root / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None:
                os.environ.setdefault(*parsed)


def normalize_database_url(url: str) -> str:
    """Rewrite bare postgres URLs to the psycopg 3 driver; other URLs pass through."""

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def resolve_database_url() -> str:
    """
    Pick the database URL.

    DATABASE_URL wins, then CLOUD_DATABASE_URL when ENVIRONMENT names a
    deployed stage, then LOCAL_DATABASE_URL, then the bundled SQLite file.
    """

    load_env_files()

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    candidates = [os.getenv("DATABASE_URL")]
    if environment in CLOUD_ENVIRONMENTS:
        candidates.append(os.getenv("CLOUD_DATABASE_URL"))
    candidates.append(os.getenv("LOCAL_DATABASE_URL"))

    for candidate in candidates:
        if candidate and candidate.strip():
            return normalize_database_url(candidate.strip())
    return DEFAULT_SQLITE_URL


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def sqlite_database_path(url: str) -> Path | None:
    """
    File behind a SQLite URL; None for in-memory and non-SQLite databases.
    """

    if not is_sqlite_url(url):
        return None
    database = make_url(url).database
    if not database or database == ":memory:":
        return None
    return Path(database)

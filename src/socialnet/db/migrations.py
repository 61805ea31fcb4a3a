"""Ordered SQL migrations for the embedded store.

Migration files live in a single directory and are named
``<sequence>_<name>.up.sql`` / ``<sequence>_<name>.down.sql``. Up files run in
lexical order and down files in reverse lexical order. Re-running a migration
over an existing schema is harmless: "already exists" errors on the way up and
"no such table" errors on the way down are logged and skipped.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from socialnet.core.settings import settings

logger = logging.getLogger(__name__)

UP_SUFFIX = ".up.sql"
DOWN_SUFFIX = ".down.sql"


def _resolve(directory: str | Path | None) -> Path:
    path = Path(directory or settings.migrations_dir)
    if not path.is_dir():
        raise FileNotFoundError(f"Migrations directory not found: {path}")
    return path


def _statements(script: str) -> list[str]:
    """Split a migration script into individual statements."""
    lines = [line for line in script.splitlines() if not line.strip().startswith("--")]
    return [stmt.strip() for stmt in "\n".join(lines).split(";") if stmt.strip()]


def _apply(engine: Engine, path: Path, tolerated: str) -> int:
    applied = 0
    for statement in _statements(path.read_text(encoding="utf-8")):
        try:
            with engine.begin() as conn:
                conn.exec_driver_sql(statement)
        except OperationalError as exc:
            if tolerated not in str(exc.orig).lower():
                raise
            logger.info("Skipping statement in %s: %s", path.name, exc.orig)
            continue
        applied += 1
    return applied


def migration_files(directory: str | Path | None = None, *, down: bool = False) -> list[Path]:
    """Return migration files in the order they must be executed."""
    suffix = DOWN_SUFFIX if down else UP_SUFFIX
    files = sorted(p for p in _resolve(directory).iterdir() if p.name.endswith(suffix))
    return list(reversed(files)) if down else files


def run_migrations(engine: Engine | None = None, directory: str | Path | None = None) -> list[str]:
    """Apply every up migration in lexical order.

    Returns:
        Names of the files that were processed.
    """
    if engine is None:
        from socialnet.db.session import engine as default_engine

        engine = default_engine
    processed = []
    for path in migration_files(directory):
        count = _apply(engine, path, "already exists")
        logger.info("Applied %s (%d statements)", path.name, count)
        processed.append(path.name)
    return processed


def rollback_migrations(engine: Engine | None = None, directory: str | Path | None = None) -> list[str]:
    """Apply every down migration in reverse lexical order."""
    if engine is None:
        from socialnet.db.session import engine as default_engine

        engine = default_engine
    processed = []
    for path in migration_files(directory, down=True):
        count = _apply(engine, path, "no such table")
        logger.info("Rolled back %s (%d statements)", path.name, count)
        processed.append(path.name)
    return processed


def clear_database(engine: Engine | None = None, directory: str | Path | None = None) -> None:
    """Drop every table and re-create the schema from scratch."""
    rollback_migrations(engine, directory)
    run_migrations(engine, directory)

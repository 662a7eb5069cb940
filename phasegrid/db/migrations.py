"""
Numbered SQL migrations.

Files named like ``0002_add_column.sql`` are applied once each, in version
order, and recorded in the ``_migrations`` table.
"""

import re
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from phasegrid.logging import get_logger

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "sql"

MIGRATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS _migrations (
    version INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    applied_at TEXT NOT NULL
);
"""

_VERSION_RE = re.compile(r"^(\d+)")


def run_migrations(conn: sqlite3.Connection, migrations_dir: Optional[Path] = None) -> List[int]:
    """
    Apply pending migrations from ``migrations_dir``.

    Each file runs in its own transaction together with its ``_migrations``
    row, so a failing file leaves no trace. Returns the versions applied.
    """
    directory = Path(migrations_dir) if migrations_dir is not None else MIGRATIONS_DIR
    conn.execute(MIGRATIONS_TABLE)
    conn.commit()
    if not directory.is_dir():
        return []

    applied = {row[0] for row in conn.execute("SELECT version FROM _migrations")}
    newly_applied: List[int] = []

    for path in sorted(directory.glob("*.sql")):
        match = _VERSION_RE.match(path.name)
        if not match:
            continue
        version = int(match.group(1))
        if version in applied:
            continue

        statements = path.read_text(encoding="utf-8")
        try:
            conn.execute("BEGIN")
            for statement in _split_statements(statements):
                conn.execute(statement)
            conn.execute(
                "INSERT INTO _migrations (version, name, applied_at) VALUES (?, ?, ?)",
                (version, path.name, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            logger.error("migration_failed", extra={"migration": path.name})
            raise
        applied.add(version)
        newly_applied.append(version)
        logger.info("migration_applied", extra={"migration": path.name, "version": version})

    return newly_applied


def _split_statements(sql: str) -> List[str]:
    """
    Split a script into complete statements.

    Lines are accumulated until ``sqlite3.complete_statement`` accepts them,
    so semicolons in string literals or trigger bodies stay inside their
    statement. executescript() would commit the open transaction.
    """
    statements: List[str] = []
    buffer = ""
    for line in sql.splitlines(keepends=True):
        buffer += line
        if sqlite3.complete_statement(buffer):
            statement = buffer.strip()
            if statement.rstrip(";").strip():
                statements.append(statement)
            buffer = ""
    # A final statement may omit its semicolon
    if buffer.strip():
        statements.append(buffer.strip())
    return statements

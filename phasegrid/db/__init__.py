"""
PhaseGrid Database Layer

SQLite persistence for projects, artifacts, worktrees, tasks and events.
"""

from phasegrid.db.database import Database, SQLiteDatabase, get_database
from phasegrid.db.migrations import run_migrations
from phasegrid.db.schema import SCHEMA_SQLITE

__all__ = [
    "Database",
    "SQLiteDatabase",
    "get_database",
    "run_migrations",
    "SCHEMA_SQLITE",
]

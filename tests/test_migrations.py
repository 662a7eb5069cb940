import sqlite3

import pytest

from phasegrid.db.migrations import MIGRATIONS_DIR, run_migrations
from phasegrid.db.schema import SCHEMA_SQLITE


@pytest.fixture
def conn(tmp_path):
    connection = sqlite3.connect(tmp_path / "m.sqlite")
    connection.executescript(SCHEMA_SQLITE)
    yield connection
    connection.close()


def _indexes(conn):
    return {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'")}


def test_bundled_migrations_apply_once(conn):
    assert MIGRATIONS_DIR.is_dir()
    first = run_migrations(conn)
    assert first and first == sorted(first)
    assert "idx_tasks_status" in _indexes(conn)
    assert run_migrations(conn) == []


def test_init_schema_records_migrations(db):
    conn = sqlite3.connect(db.db_path)
    try:
        versions = [row[0] for row in conn.execute("SELECT version FROM _migrations")]
    finally:
        conn.close()
    assert 1 in versions


def test_custom_directory_order_and_skip(conn, tmp_path):
    migrations = tmp_path / "sql"
    migrations.mkdir()
    (migrations / "0002_second.sql").write_text(
        "ALTER TABLE projects ADD COLUMN archived INTEGER DEFAULT 0;", encoding="utf-8"
    )
    (migrations / "0001_first.sql").write_text(
        "CREATE TABLE notes (id INTEGER PRIMARY KEY);\nCREATE INDEX idx_notes ON notes(id);", encoding="utf-8"
    )
    (migrations / "README.sql").write_text("garbage", encoding="utf-8")

    assert run_migrations(conn, migrations) == [1, 2]
    columns = {row[1] for row in conn.execute("PRAGMA table_info(projects)")}
    assert "archived" in columns
    assert "idx_notes" in _indexes(conn)


def test_failed_migration_rolls_back(conn, tmp_path):
    migrations = tmp_path / "sql"
    migrations.mkdir()
    (migrations / "0001_bad.sql").write_text(
        "CREATE TABLE half (id INTEGER);\nINSERT INTO nowhere VALUES (1);", encoding="utf-8"
    )

    with pytest.raises(sqlite3.OperationalError):
        run_migrations(conn, migrations)

    tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert "half" not in tables
    assert conn.execute("SELECT COUNT(*) FROM _migrations").fetchone()[0] == 0


def test_missing_directory_is_a_no_op(conn, tmp_path):
    assert run_migrations(conn, tmp_path / "absent") == []


def test_semicolons_inside_literals_and_triggers(conn, tmp_path):
    migrations = tmp_path / "sql"
    migrations.mkdir()
    (migrations / "0001_audit.sql").write_text(
        "CREATE TABLE audit (note TEXT);\n"
        "INSERT INTO audit (note) VALUES ('a; b');\n"
        "CREATE TRIGGER audit_projects AFTER INSERT ON projects\n"
        "BEGIN\n"
        "    INSERT INTO audit (note) VALUES ('project; ' || NEW.name);\n"
        "END;\n",
        encoding="utf-8",
    )

    assert run_migrations(conn, migrations) == [1]
    conn.execute(
        "INSERT INTO projects (id, name, repo_path, created_at, updated_at) VALUES ('p', 'demo', '/r', 'now', 'now')"
    )
    notes = [row[0] for row in conn.execute("SELECT note FROM audit ORDER BY rowid")]
    assert notes == ["a; b", "project; demo"]

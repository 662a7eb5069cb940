"""
PhaseGrid Database Service

SQLite persistence for projects, artifacts, worktrees, tasks and the event log.
This is the only module that touches storage. Lookups return ``None`` for
missing rows; callers decide whether that is an error.
"""

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Union

from phasegrid.db.migrations import run_migrations
from phasegrid.db.schema import SCHEMA_SQLITE
from phasegrid.errors import StorageError
from phasegrid.logging import get_logger
from phasegrid.models.domain import (
    DEFAULT_MODEL_CONFIG,
    Artifact,
    ArtifactStatus,
    Event,
    EventDetails,
    NewTask,
    ParsedTask,
    Phase,
    PhaseChangeDetails,
    Project,
    Task,
    TaskStatus,
    TaskUpdateDetails,
    Worktree,
    WorktreeStatus,
)

logger = get_logger(__name__)

# Sentinel for unset optional parameters
_UNSET = object()

_REVIEW_COLUMNS = {"spec": "spec_review", "quality": "quality_review"}


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


class SQLiteDatabase:
    """
    SQLite-backed persistence for PhaseGrid state.

    Foreign keys are enforced on every connection and the database runs in
    write-ahead-log mode once ``init_schema`` has been called.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database transactions.

        With ``immediate=True`` the write lock is taken up front so reads made
        inside the block cannot go stale before the writes land.
        """
        conn = self._connect()
        try:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise StorageError(f"Integrity constraint failed: {exc}") from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _fetchone(self, query: str, params: Iterable[Any] = ()) -> Optional[sqlite3.Row]:
        conn = self._connect()
        try:
            return conn.execute(query, tuple(params)).fetchone()
        finally:
            conn.close()

    def _fetchall(self, query: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        conn = self._connect()
        try:
            return conn.execute(query, tuple(params)).fetchall()
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Create tables if missing, enable WAL and apply pending migrations."""
        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA_SQLITE)
            conn.commit()
            run_migrations(conn)
        finally:
            conn.close()

    def pragma(self, name: str) -> Any:
        """Read a single PRAGMA value (diagnostics and tests)."""
        row = self._fetchone(f"PRAGMA {name}")
        return row[0] if row is not None else None

    # Helper methods for JSON parsing
    @staticmethod
    def _parse_json(value: Any) -> Optional[Union[dict, list]]:
        if value is None:
            return None
        if isinstance(value, (dict, list)):
            return value
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            return None

    # Row to model converters
    def _row_to_project(self, row: sqlite3.Row) -> Project:
        return Project(
            id=row["id"],
            name=row["name"],
            repo_path=row["repo_path"],
            phase=Phase(row["phase"]),
            model_config=self._parse_json(row["model_config"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_artifact(row: sqlite3.Row) -> Artifact:
        return Artifact(
            id=row["id"],
            project_id=row["project_id"],
            type=row["type"],
            content=row["content"],
            file_path=row["file_path"],
            status=row["status"],
            feedback=row["feedback"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_worktree(row: sqlite3.Row) -> Worktree:
        return Worktree(
            id=row["id"],
            project_id=row["project_id"],
            branch=row["branch"],
            path=row["path"],
            status=row["status"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            project_id=row["project_id"],
            artifact_id=row["artifact_id"],
            worktree_id=row["worktree_id"],
            task_number=row["task_number"],
            title=row["title"],
            description=row["description"],
            status=row["status"],
            agent_session=row["agent_session"],
            spec_review=row["spec_review"],
            quality_review=row["quality_review"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event(
            id=row["id"],
            project_id=row["project_id"],
            event_type=row["event_type"],
            details=self._parse_json(row["details"]),
            created_at=row["created_at"],
        )

    # Project operations
    def create_project(self, name: str, repo_path: str) -> Project:
        project_id = _new_id()
        now = _utcnow()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO projects (id, name, repo_path, phase, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (project_id, name, repo_path, Phase.BRAINSTORM.value, now, now),
            )
        return self.get_project(project_id)

    def get_project(self, project_id: str) -> Optional[Project]:
        row = self._fetchone("SELECT * FROM projects WHERE id = ?", (project_id,))
        if row is None:
            return None
        return self._row_to_project(row)

    def list_projects(self) -> List[Project]:
        rows = self._fetchall("SELECT * FROM projects ORDER BY created_at DESC, rowid DESC")
        return [self._row_to_project(row) for row in rows]

    def set_model_config(self, project_id: str, model_config: Dict[str, str]) -> Optional[Project]:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE projects SET model_config = ?, updated_at = ? WHERE id = ?",
                (json.dumps(model_config), _utcnow(), project_id),
            )
        return self.get_project(project_id)

    def update_project_phase(self, project_id: str, phase: Phase) -> Optional[Project]:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE projects SET phase = ?, updated_at = ? WHERE id = ?",
                (Phase(phase).value, _utcnow(), project_id),
            )
        return self.get_project(project_id)

    def advance_project_phase(self, project_id: str, from_phase: Phase, to_phase: Phase) -> bool:
        """
        Move a project from ``from_phase`` to ``to_phase`` and log the change.

        The phase write and its ``phase_change`` event commit together. Returns
        False (writing nothing) if the project is no longer in ``from_phase``.
        """
        details = PhaseChangeDetails(to=Phase(to_phase).value, from_=Phase(from_phase).value)
        now = _utcnow()
        with self._transaction(immediate=True) as conn:
            cur = conn.execute(
                "UPDATE projects SET phase = ?, updated_at = ? WHERE id = ? AND phase = ?",
                (details.to, now, project_id, details.from_),
            )
            if cur.rowcount == 0:
                return False
            self._insert_event(conn, project_id, details, now)
        return True

    def get_model_for_phase(self, project_id: str, phase: Union[Phase, str]) -> str:
        """Return the project's model override for ``phase`` or the static default."""
        phase = Phase(phase)
        project = self.get_project(project_id)
        if project is not None and project.model_config:
            override = project.model_config.get(phase.value)
            if override:
                return override
        return DEFAULT_MODEL_CONFIG[phase]

    # Artifact operations
    def create_artifact(
        self,
        project_id: str,
        artifact_type: str,
        content: str,
        file_path: Optional[str] = None,
    ) -> Artifact:
        artifact_id = _new_id()
        now = _utcnow()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO artifacts (
                    id, project_id, type, content, file_path, status, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (artifact_id, project_id, artifact_type, content, file_path, ArtifactStatus.DRAFT, now, now),
            )
        return self.get_artifact(artifact_id)

    def get_artifact(self, artifact_id: str) -> Optional[Artifact]:
        row = self._fetchone("SELECT * FROM artifacts WHERE id = ?", (artifact_id,))
        if row is None:
            return None
        return self._row_to_artifact(row)

    def list_artifacts(self, project_id: str, artifact_type: Optional[str] = None) -> List[Artifact]:
        if artifact_type:
            rows = self._fetchall(
                "SELECT * FROM artifacts WHERE project_id = ? AND type = ? ORDER BY created_at, rowid",
                (project_id, artifact_type),
            )
        else:
            rows = self._fetchall(
                "SELECT * FROM artifacts WHERE project_id = ? ORDER BY created_at, rowid",
                (project_id,),
            )
        return [self._row_to_artifact(row) for row in rows]

    def update_artifact_status(
        self,
        artifact_id: str,
        status: str,
        feedback: Optional[str] = None,
    ) -> Optional[Artifact]:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE artifacts SET status = ?, feedback = ?, updated_at = ? WHERE id = ?",
                (status, feedback, _utcnow(), artifact_id),
            )
        return self.get_artifact(artifact_id)

    # Worktree operations
    def create_worktree(self, project_id: str, branch: str, path: str) -> Worktree:
        worktree_id = _new_id()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO worktrees (id, project_id, branch, path, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (worktree_id, project_id, branch, path, WorktreeStatus.ACTIVE, _utcnow()),
            )
        return self.get_worktree(worktree_id)

    def get_worktree(self, worktree_id: str) -> Optional[Worktree]:
        row = self._fetchone("SELECT * FROM worktrees WHERE id = ?", (worktree_id,))
        if row is None:
            return None
        return self._row_to_worktree(row)

    def list_worktrees(self, project_id: str) -> List[Worktree]:
        rows = self._fetchall(
            "SELECT * FROM worktrees WHERE project_id = ? ORDER BY created_at, rowid",
            (project_id,),
        )
        return [self._row_to_worktree(row) for row in rows]

    def update_worktree_status(self, worktree_id: str, status: str) -> Optional[Worktree]:
        with self._transaction() as conn:
            conn.execute("UPDATE worktrees SET status = ? WHERE id = ?", (status, worktree_id))
        return self.get_worktree(worktree_id)

    # Task operations
    def create_task(
        self,
        project_id: str,
        task_number: int,
        title: str,
        description: str,
        *,
        artifact_id: Optional[str] = None,
        worktree_id: Optional[str] = None,
    ) -> Task:
        created = self.create_task_batch(
            project_id,
            [NewTask(task_number, title, description, artifact_id=artifact_id, worktree_id=worktree_id)],
        )
        return created[0]

    def create_task_batch(
        self,
        project_id: str,
        tasks: Sequence[Union[NewTask, ParsedTask]],
        *,
        artifact_id: Optional[str] = None,
        worktree_id: Optional[str] = None,
    ) -> List[Task]:
        """
        Insert tasks in a single transaction: either every row lands or none do.

        ``artifact_id``/``worktree_id`` apply to entries that do not carry their own.

        Raises:
            StorageError: On any constraint failure (e.g. a duplicate task number)
        """
        ids: List[str] = []
        with self._transaction() as conn:
            for item in tasks:
                task_id = _new_id()
                conn.execute(
                    """
                    INSERT INTO tasks (
                        id, project_id, artifact_id, worktree_id,
                        task_number, title, description, status
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task_id,
                        project_id,
                        getattr(item, "artifact_id", None) or artifact_id,
                        getattr(item, "worktree_id", None) or worktree_id,
                        item.task_number,
                        item.title,
                        item.description,
                        TaskStatus.PENDING,
                    ),
                )
                ids.append(task_id)
        return [self.get_task(task_id) for task_id in ids]

    def get_task(self, task_id: str) -> Optional[Task]:
        row = self._fetchone("SELECT * FROM tasks WHERE id = ?", (task_id,))
        if row is None:
            return None
        return self._row_to_task(row)

    def get_task_by_number(self, project_id: str, task_number: int) -> Optional[Task]:
        row = self._fetchone(
            "SELECT * FROM tasks WHERE project_id = ? AND task_number = ?",
            (project_id, task_number),
        )
        if row is None:
            return None
        return self._row_to_task(row)

    def list_tasks(self, project_id: str) -> List[Task]:
        rows = self._fetchall(
            "SELECT * FROM tasks WHERE project_id = ? ORDER BY task_number",
            (project_id,),
        )
        return [self._row_to_task(row) for row in rows]

    def get_task_range(self, project_id: str, first: int, last: int) -> List[Task]:
        rows = self._fetchall(
            """
            SELECT * FROM tasks
            WHERE project_id = ? AND task_number >= ? AND task_number <= ?
            ORDER BY task_number
            """,
            (project_id, first, last),
        )
        return [self._row_to_task(row) for row in rows]

    def start_task(self, task_id: str) -> Optional[Task]:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE tasks SET status = ?, started_at = ? WHERE id = ?",
                (TaskStatus.IN_PROGRESS, _utcnow(), task_id),
            )
        return self.get_task(task_id)

    def update_task_status(self, task_id: str, status: str, *, completed_at: Any = _UNSET) -> Optional[Task]:
        updates = ["status = ?"]
        params: List[Any] = [status]
        if completed_at is not _UNSET:
            updates.append("completed_at = ?")
            params.append(completed_at)
        params.append(task_id)
        with self._transaction() as conn:
            conn.execute(f"UPDATE tasks SET {', '.join(updates)} WHERE id = ?", tuple(params))
        return self.get_task(task_id)

    def set_task_review(self, task_id: str, review_type: str, text: str) -> Optional[Task]:
        column = _REVIEW_COLUMNS.get(review_type)
        if column is None:
            raise ValueError(f"Unknown review type: {review_type}")
        with self._transaction() as conn:
            conn.execute(f"UPDATE tasks SET {column} = ? WHERE id = ?", (text, task_id))
        return self.get_task(task_id)

    def approve_task(self, task_id: str) -> Optional[Task]:
        return self.update_task_status(task_id, TaskStatus.APPROVED, completed_at=_utcnow())

    def set_task_agent(self, task_id: str, session_key: str) -> Optional[Task]:
        with self._transaction() as conn:
            conn.execute("UPDATE tasks SET agent_session = ? WHERE id = ?", (session_key, task_id))
        return self.get_task(task_id)

    def start_pending_tasks(self, project_id: str, task_numbers: Sequence[int]) -> List[Task]:
        """
        Mark the listed tasks in-progress if they are still pending.

        The pending check, the status writes and their ``task_update`` events
        share one write-locked transaction, so two callers cannot both start
        the same task. Numbers that are unknown or not pending are skipped.
        """
        started: List[str] = []
        now = _utcnow()
        with self._transaction(immediate=True) as conn:
            for number in dict.fromkeys(task_numbers):
                row = conn.execute(
                    "SELECT id, status FROM tasks WHERE project_id = ? AND task_number = ?",
                    (project_id, number),
                ).fetchone()
                if row is None or row["status"] != TaskStatus.PENDING:
                    continue
                conn.execute(
                    "UPDATE tasks SET status = ?, started_at = ? WHERE id = ?",
                    (TaskStatus.IN_PROGRESS, now, row["id"]),
                )
                self._insert_event(
                    conn,
                    project_id,
                    TaskUpdateDetails(task=int(number), status=TaskStatus.IN_PROGRESS),
                    now,
                )
                started.append(row["id"])
        return [self.get_task(task_id) for task_id in started]

    # Event operations
    @staticmethod
    def _insert_event(conn: sqlite3.Connection, project_id: str, details: EventDetails, created_at: str) -> int:
        cur = conn.execute(
            """
            INSERT INTO events (project_id, event_type, details, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (project_id, details.event_type, json.dumps(details.to_dict()), created_at),
        )
        return cur.lastrowid

    def append_event(self, project_id: str, details: EventDetails) -> Event:
        with self._transaction() as conn:
            event_id = self._insert_event(conn, project_id, details, _utcnow())
        row = self._fetchone("SELECT * FROM events WHERE id = ?", (event_id,))
        return self._row_to_event(row)

    def list_events(self, project_id: str, limit: Optional[int] = None) -> List[Event]:
        """Events for a project, newest first."""
        if limit:
            rows = self._fetchall(
                "SELECT * FROM events WHERE project_id = ? ORDER BY id DESC LIMIT ?",
                (project_id, int(limit)),
            )
        else:
            rows = self._fetchall(
                "SELECT * FROM events WHERE project_id = ? ORDER BY id DESC",
                (project_id,),
            )
        return [self._row_to_event(row) for row in rows]


# Type alias for the database interface
Database = SQLiteDatabase


def get_database(db_path: Optional[Path] = None) -> Database:
    """
    Create a database for ``db_path`` (or the configured path) with its schema applied.
    """
    if db_path is None:
        from phasegrid.config import get_config

        db_path = get_config().db_path
    db = SQLiteDatabase(Path(db_path))
    db.init_schema()
    return db

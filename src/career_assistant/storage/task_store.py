"""SQLite-backed task storage, every query scoped by owner."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from career_assistant.exceptions import InvalidInputError, PersistenceError
from career_assistant.models.task import Task

DEFAULT_DB_PATH = Path.home() / ".career-assistant" / "tasks.db"

UPDATABLE_FIELDS = ("existing_profile", "job_description", "notes", "gaps")

_COLUMNS = (
    "id, owner_id, name, company, notes, existing_profile, "
    "job_description, gaps, created_at"
)


class TaskStore:
    """SQLite-backed store for tasks with WAL mode."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    company TEXT NOT NULL,
                    notes TEXT,
                    existing_profile TEXT,
                    job_description TEXT,
                    gaps TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks (owner_id, created_at)"
            )

    def create_task(
        self,
        owner_id: str,
        name: str,
        company: str,
        notes: str | None = None,
    ) -> Task:
        """Insert a new task. Name and company are required."""
        name = (name or "").strip()
        company = (company or "").strip()
        if not name or not company:
            raise InvalidInputError("Task name and company name are required.")
        task = Task(
            owner_id=owner_id,
            name=name,
            company=company,
            notes=(notes or "").strip() or None,
        )
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    task.id,
                    task.owner_id,
                    task.name,
                    task.company,
                    task.notes,
                    task.existing_profile,
                    task.job_description,
                    task.gaps,
                    task.created_at.isoformat(),
                ),
            )
        return task

    def list_tasks(self, owner_id: str) -> list[Task]:
        """Return the owner's tasks, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE owner_id = ? ORDER BY created_at DESC",
                (owner_id,),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def get_task(self, task_id: str, owner_id: str) -> Task | None:
        """Return the task, or None if it does not exist for this owner."""
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE id = ? AND owner_id = ?",
                (task_id, owner_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def update_task(self, task_id: str, owner_id: str, **fields: str | None) -> bool:
        """Overwrite the given fields. Returns False if no owned row matched.

        Blank profile and job description values are stored as NULL.
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_task(task_id, owner_id) is not None

        values: dict[str, str | None] = {}
        for key, value in fields.items():
            if key in ("existing_profile", "job_description", "notes"):
                value = (value or "").strip() or None
            values[key] = value

        assignments = ", ".join(f"{key} = ?" for key in values)
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    f"UPDATE tasks SET {assignments} WHERE id = ? AND owner_id = ?",
                    (*values.values(), task_id, owner_id),
                )
                return cursor.rowcount > 0
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to update task {task_id}: {exc}") from exc

    @staticmethod
    def _row_to_task(row: tuple) -> Task:
        return Task(
            id=row[0],
            owner_id=row[1],
            name=row[2],
            company=row[3],
            notes=row[4],
            existing_profile=row[5],
            job_description=row[6],
            gaps=row[7],
            created_at=datetime.fromisoformat(row[8]),
        )

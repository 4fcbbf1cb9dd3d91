"""
tasks/store.py -- SQLAlchemy-backed persistence layer for tasks.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in tasks/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. TaskStore is the repository; _row_to_task
is the mapper. Every read joins the users table twice so a Task always comes
back with resolved assigned_to / created_by references.

The tasks table is registered on auth.store.metadata so its foreign keys to
users.id resolve and create_all() builds both tables in one database.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TaskStore()
    task_id = store.create_task(task)
    store.set_completion(task_id, True)
    tasks = store.list_assigned_to(user_id)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table, Text, func, or_, select
from sqlalchemy.engine import Engine

from auth.store import make_engine, metadata, users
from core.config import get_settings
from tasks.models import Task, UserRef

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("completed", Boolean, nullable=False, server_default="0"),
    Column("completed_at", String(32)),
    Column("assigned_to_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("created_by_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("created_at", String(32), nullable=False),
)

_assignee = users.alias("assignee")
_creator = users.alias("creator")

# Base SELECT shared by every read. Inner joins are safe: both foreign keys
# are NOT NULL and users are never deleted.
_TASK_SELECT = select(
    tasks,
    _assignee.c.username.label("assigned_to_username"),
    _creator.c.username.label("created_by_username"),
).select_from(
    tasks.join(_assignee, tasks.c.assigned_to_id == _assignee.c.id).join(
        _creator, tasks.c.created_by_id == _creator.c.id
    )
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _involving(user_id: int):
    return or_(tasks.c.assigned_to_id == user_id, tasks.c.created_by_id == user_id)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    """Repository for Task entities."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_task(self, task_id: int) -> Optional[Task]:
        """Return the task with this id, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(_TASK_SELECT.where(tasks.c.id == task_id)).first()
        return _row_to_task(row) if row is not None else None

    def list_tasks(self) -> list[Task]:
        """Return every task, oldest first."""
        return self._fetch(_TASK_SELECT)

    def list_assigned_to(self, user_id: int) -> list[Task]:
        """Return tasks whose assignee is user_id."""
        return self._fetch(_TASK_SELECT.where(tasks.c.assigned_to_id == user_id))

    def list_assigned_to_or_created_by(self, user_id: int) -> list[Task]:
        """Return tasks assigned to OR created by user_id.

        A task that is both assigned to and created by the user appears once:
        this is a single WHERE ... OR ... scan, not a union of two lists.
        """
        return self._fetch(_TASK_SELECT.where(_involving(user_id)))

    def count_tasks(
        self,
        *,
        assigned_to_id: Optional[int] = None,
        involving_user_id: Optional[int] = None,
        completed: Optional[bool] = None,
    ) -> int:
        """Count tasks, optionally narrowed by assignee, involvement, and completion."""
        stmt = select(func.count()).select_from(tasks)
        if assigned_to_id is not None:
            stmt = stmt.where(tasks.c.assigned_to_id == assigned_to_id)
        if involving_user_id is not None:
            stmt = stmt.where(_involving(involving_user_id))
        if completed is not None:
            stmt = stmt.where(tasks.c.completed == completed)
        with self.engine.connect() as conn:
            result = conn.execute(stmt).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_task(self, task: Task) -> int:
        """Insert a new task and return its id. created_at is stamped here."""
        with self.engine.connect() as conn:
            result = conn.execute(
                tasks.insert().values(
                    title=task.title,
                    description=task.description,
                    completed=task.completed,
                    completed_at=task.completed_at if task.completed else None,
                    assigned_to_id=task.assigned_to.id,
                    created_by_id=task.created_by.id,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_details(self, task_id: int, title: str, description: Optional[str]) -> bool:
        """Replace title and description. Returns False if the task is gone."""
        with self.engine.connect() as conn:
            result = conn.execute(
                tasks.update().where(tasks.c.id == task_id).values(title=title, description=description)
            )
            conn.commit()
        return result.rowcount > 0

    def set_completion(self, task_id: int, completed: bool) -> bool:
        """Set the completion flag and its timestamp in a single UPDATE.

        completed=True stamps completed_at with the current UTC time;
        completed=False clears it. Returns False if the task is gone.
        """
        completed_at = _now_iso() if completed else None
        with self.engine.connect() as conn:
            result = conn.execute(
                tasks.update().where(tasks.c.id == task_id).values(completed=completed, completed_at=completed_at)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_task(self, task_id: int) -> bool:
        """Delete a task. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(tasks.delete().where(tasks.c.id == task_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch(self, stmt) -> list[Task]:
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(tasks.c.id)).fetchall()
        return [_row_to_task(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description,
        completed=bool(row.completed),
        completed_at=row.completed_at,
        assigned_to=UserRef(id=row.assigned_to_id, username=row.assigned_to_username),
        created_by=UserRef(id=row.created_by_id, username=row.created_by_username),
        created_at=row.created_at,
    )

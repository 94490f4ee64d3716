from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

from prodify.db_converters import _row_to_task
from prodify.db_models import Task


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class TaskMixin:
    def add_task(
        self: DbProtocol,
        user_id: str,
        title: str,
        now: datetime,
        description: str | None = None,
        priority: str = "medium",
        category: str | None = None,
        due_date: datetime | None = None,
        estimated_time: int | None = None,
    ) -> Task:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO tasks(user_id, title, description, priority, category, due_date, estimated_time, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    title,
                    description,
                    priority,
                    category,
                    due_date.isoformat() if due_date else None,
                    estimated_time,
                    now.isoformat(),
                ),
            )
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_task(row)

    def get_task(self: DbProtocol, task_id: int) -> Task | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(row) if row else None

    def list_tasks(self: DbProtocol, user_id: str, open_only: bool = False) -> list[Task]:
        with self._connect() as conn:
            if open_only:
                rows = conn.execute(
                    "SELECT * FROM tasks WHERE user_id = ? AND completed = 0 ORDER BY created_at DESC, id DESC",
                    (user_id,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM tasks WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                    (user_id,),
                ).fetchall()
        return [_row_to_task(r) for r in rows]

    def set_task_completed(self: DbProtocol, task_id: int, completed: bool, at: datetime) -> bool:
        with self._connect() as conn:
            if completed:
                cur = conn.execute(
                    "UPDATE tasks SET completed = 1, completed_at = ? WHERE id = ? AND completed = 0",
                    (at.isoformat(), task_id),
                )
            else:
                cur = conn.execute(
                    "UPDATE tasks SET completed = 0, completed_at = NULL WHERE id = ? AND completed = 1",
                    (task_id,),
                )
        return cur.rowcount > 0

    def delete_task(self: DbProtocol, user_id: str, task_id: int) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id))
        return cur.rowcount > 0

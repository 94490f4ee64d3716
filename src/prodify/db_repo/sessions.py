from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

from prodify.db_converters import _row_to_focus_session
from prodify.db_models import FocusSession


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class FocusSessionMixin:
    def start_focus_session(self: DbProtocol, user_id: str, duration_minutes: int, started_at: datetime) -> FocusSession:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO focus_sessions(user_id, duration_minutes, started_at) VALUES (?, ?, ?)",
                (user_id, duration_minutes, started_at.isoformat()),
            )
            row = conn.execute("SELECT * FROM focus_sessions WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_focus_session(row)

    def get_focus_session(self: DbProtocol, session_id: int) -> FocusSession | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM focus_sessions WHERE id = ?", (session_id,)).fetchone()
        return _row_to_focus_session(row) if row else None

    def mark_focus_session_completed(self: DbProtocol, session_id: int, ended_at: datetime) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE focus_sessions SET completed = 1, ended_at = ? WHERE id = ? AND completed = 0",
                (ended_at.isoformat(), session_id),
            )
        return cur.rowcount > 0

    def list_focus_sessions(self: DbProtocol, user_id: str, start: datetime, end: datetime) -> list[FocusSession]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM focus_sessions
                WHERE user_id = ? AND started_at >= ? AND started_at < ?
                ORDER BY started_at ASC, id ASC
                """,
                (user_id, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [_row_to_focus_session(r) for r in rows]

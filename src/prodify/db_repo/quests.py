from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Protocol

from prodify.db_constants import DAILY_QUESTS
from prodify.db_converters import _row_to_quest
from prodify.db_models import Quest


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class QuestMixin:
    def ensure_daily_quests(self: DbProtocol, user_id: str, day: date, now: datetime) -> list[Quest]:
        day_key = day.isoformat()
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS c FROM daily_quests WHERE user_id = ? AND quest_date = ?",
                (user_id, day_key),
            ).fetchone()
            if not row or int(row["c"]) == 0:
                for template in DAILY_QUESTS:
                    conn.execute(
                        """
                        INSERT OR IGNORE INTO daily_quests(
                            user_id, quest_date, kind, title, description, xp_reward, gem_reward, created_at
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            user_id,
                            day_key,
                            template.kind.value,
                            template.title,
                            template.description,
                            template.xp_reward,
                            template.gem_reward,
                            now.isoformat(),
                        ),
                    )
            rows = conn.execute(
                "SELECT * FROM daily_quests WHERE user_id = ? AND quest_date = ? ORDER BY id ASC",
                (user_id, day_key),
            ).fetchall()
        return [_row_to_quest(r) for r in rows]

    def list_daily_quests(self: DbProtocol, user_id: str, day: date) -> list[Quest]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM daily_quests WHERE user_id = ? AND quest_date = ? ORDER BY id ASC",
                (user_id, day.isoformat()),
            ).fetchall()
        return [_row_to_quest(r) for r in rows]

    def get_quest(self: DbProtocol, quest_id: int) -> Quest | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM daily_quests WHERE id = ?", (quest_id,)).fetchone()
        return _row_to_quest(row) if row else None

    def mark_quest_completed(self: DbProtocol, quest_id: int, at: datetime) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE daily_quests SET completed = 1, completed_at = ? WHERE id = ? AND completed = 0",
                (at.isoformat(), quest_id),
            )
        return cur.rowcount > 0

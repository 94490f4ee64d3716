from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Protocol

from prodify.db_converters import _row_to_ledger
from prodify.db_models import Ledger
from prodify.errors import Conflict, DuplicateEvent, LedgerNotFound

_LEDGER_COLUMNS = (
    "user_id, xp, gems, current_streak, last_activity_date, total_focus_time, "
    "total_tasks_completed, purchased_items_json, version, updated_at"
)


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class LedgerMixin:
    def create_ledger(self: DbProtocol, user_id: str, now: datetime) -> Ledger:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO ledgers(user_id, updated_at) VALUES (?, ?)",
                (user_id, now.isoformat()),
            )
            row = conn.execute(f"SELECT {_LEDGER_COLUMNS} FROM ledgers WHERE user_id = ?", (user_id,)).fetchone()
        assert row is not None
        return _row_to_ledger(row)

    def get_ledger(self: DbProtocol, user_id: str) -> Ledger:
        with self._connect() as conn:
            row = conn.execute(f"SELECT {_LEDGER_COLUMNS} FROM ledgers WHERE user_id = ?", (user_id,)).fetchone()
        if row is None:
            raise LedgerNotFound(f"No ledger for user {user_id}; provision one at account creation")
        return _row_to_ledger(row)

    def list_ledger_user_ids(self: DbProtocol) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT user_id FROM ledgers ORDER BY user_id ASC").fetchall()
        return [str(r["user_id"]) for r in rows]

    def save_ledger(
        self: DbProtocol,
        ledger: Ledger,
        expected_version: int,
        now: datetime,
        event_key: str | None = None,
        event_kind: str | None = None,
    ) -> Ledger:
        """Compare-and-swap write of a ledger row.

        The row is only updated when its version still equals
        ``expected_version``. When ``event_key`` is given the processed-event
        marker is inserted in the same transaction, so the reward and its
        replay guard land together or not at all.
        """
        items = json.dumps(sorted(ledger.purchased_items))
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE ledgers
                SET xp = ?, gems = ?, current_streak = ?, last_activity_date = ?,
                    total_focus_time = ?, total_tasks_completed = ?, purchased_items_json = ?,
                    version = version + 1, updated_at = ?
                WHERE user_id = ? AND version = ?
                """,
                (
                    ledger.xp,
                    ledger.gems,
                    ledger.current_streak,
                    ledger.last_activity_date.isoformat() if ledger.last_activity_date else None,
                    ledger.total_focus_time,
                    ledger.total_tasks_completed,
                    items,
                    now.isoformat(),
                    ledger.user_id,
                    expected_version,
                ),
            )
            if cur.rowcount == 0:
                exists = conn.execute("SELECT 1 FROM ledgers WHERE user_id = ?", (ledger.user_id,)).fetchone()
                if exists is None:
                    raise LedgerNotFound(f"No ledger for user {ledger.user_id}")
                raise Conflict("Your progress was updated elsewhere, please retry")

            if event_key is not None:
                marker = conn.execute(
                    """
                    INSERT OR IGNORE INTO processed_events(user_id, event_key, kind, applied_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (ledger.user_id, event_key, event_kind or "unknown", now.isoformat()),
                )
                if marker.rowcount == 0:
                    raise DuplicateEvent(f"Reward for {event_key} was already granted")

            row = conn.execute(f"SELECT {_LEDGER_COLUMNS} FROM ledgers WHERE user_id = ?", (ledger.user_id,)).fetchone()
        assert row is not None
        return _row_to_ledger(row)

    def has_processed_event(self: DbProtocol, user_id: str, event_key: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM processed_events WHERE user_id = ? AND event_key = ?",
                (user_id, event_key),
            ).fetchone()
        return row is not None

    def count_events(self: DbProtocol, user_id: str, kind: str, start: datetime, end: datetime) -> int:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS c FROM processed_events
                WHERE user_id = ? AND kind = ? AND applied_at >= ? AND applied_at < ?
                """,
                (user_id, kind, start.isoformat(), end.isoformat()),
            ).fetchone()
        return int(row["c"]) if row else 0

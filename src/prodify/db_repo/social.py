from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

from prodify.db_converters import (
    _row_to_friend_request,
    _row_to_participant,
    _row_to_profile,
    _row_to_study_message,
    _row_to_study_session,
)
from prodify.db_models import FriendRequest, Profile, StudyMessage, StudyParticipant, StudySession


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class SocialMixin:
    def upsert_profile(self: DbProtocol, user_id: str, now: datetime) -> Profile:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO profiles(user_id, created_at) VALUES (?, ?)",
                (user_id, now.isoformat()),
            )
            row = conn.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
        assert row is not None
        return _row_to_profile(row)

    def get_profile(self: DbProtocol, user_id: str) -> Profile | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
        return _row_to_profile(row) if row else None

    def find_profile_by_username(self: DbProtocol, username: str) -> Profile | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM profiles WHERE lower(username) = lower(?)",
                (username,),
            ).fetchone()
        return _row_to_profile(row) if row else None

    def set_username(self: DbProtocol, user_id: str, username: str) -> bool:
        """Returns False when the username is already taken."""
        try:
            with self._connect() as conn:
                conn.execute("UPDATE profiles SET username = ? WHERE user_id = ?", (username, user_id))
        except sqlite3.IntegrityError:
            return False
        return True

    def create_friend_request(self: DbProtocol, sender_id: str, receiver_id: str, now: datetime) -> FriendRequest:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO friend_requests(sender_id, receiver_id, status, created_at) VALUES (?, ?, 'pending', ?)",
                (sender_id, receiver_id, now.isoformat()),
            )
            row = conn.execute("SELECT * FROM friend_requests WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_friend_request(row)

    def get_friend_request(self: DbProtocol, request_id: int) -> FriendRequest | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM friend_requests WHERE id = ?", (request_id,)).fetchone()
        return _row_to_friend_request(row) if row else None

    def has_pending_request_between(self: DbProtocol, user_a: str, user_b: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT 1 FROM friend_requests
                WHERE status = 'pending'
                  AND ((sender_id = ? AND receiver_id = ?) OR (sender_id = ? AND receiver_id = ?))
                LIMIT 1
                """,
                (user_a, user_b, user_b, user_a),
            ).fetchone()
        return row is not None

    def list_incoming_requests(self: DbProtocol, user_id: str) -> list[FriendRequest]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM friend_requests WHERE receiver_id = ? AND status = 'pending' ORDER BY id ASC",
                (user_id,),
            ).fetchall()
        return [_row_to_friend_request(r) for r in rows]

    def list_outgoing_requests(self: DbProtocol, user_id: str) -> list[FriendRequest]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM friend_requests WHERE sender_id = ? AND status = 'pending' ORDER BY id ASC",
                (user_id,),
            ).fetchall()
        return [_row_to_friend_request(r) for r in rows]

    def resolve_friend_request(self: DbProtocol, request_id: int, status: str, now: datetime) -> bool:
        """Move a pending request to accepted/rejected; accepting also writes both friendship rows."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM friend_requests WHERE id = ? AND status = 'pending'",
                (request_id,),
            ).fetchone()
            if row is None:
                return False
            conn.execute("UPDATE friend_requests SET status = ? WHERE id = ?", (status, request_id))
            if status == "accepted":
                for a, b in ((row["sender_id"], row["receiver_id"]), (row["receiver_id"], row["sender_id"])):
                    conn.execute(
                        "INSERT OR IGNORE INTO friendships(user_id, friend_id, created_at) VALUES (?, ?, ?)",
                        (a, b, now.isoformat()),
                    )
        return True

    def are_friends(self: DbProtocol, user_id: str, friend_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM friendships WHERE user_id = ? AND friend_id = ?",
                (user_id, friend_id),
            ).fetchone()
        return row is not None

    def list_friend_ids(self: DbProtocol, user_id: str) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT friend_id FROM friendships WHERE user_id = ? ORDER BY created_at ASC",
                (user_id,),
            ).fetchall()
        return [str(r["friend_id"]) for r in rows]

    def remove_friendship(self: DbProtocol, user_id: str, friend_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                """
                DELETE FROM friendships
                WHERE (user_id = ? AND friend_id = ?) OR (user_id = ? AND friend_id = ?)
                """,
                (user_id, friend_id, friend_id, user_id),
            )
        return cur.rowcount > 0

    def create_study_session(self: DbProtocol, host_id: str, name: str, now: datetime) -> StudySession:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO study_sessions(host_id, name, is_active, created_at) VALUES (?, ?, 1, ?)",
                (host_id, name, now.isoformat()),
            )
            conn.execute(
                "INSERT INTO study_session_participants(session_id, user_id, is_active, joined_at) VALUES (?, ?, 1, ?)",
                (cur.lastrowid, host_id, now.isoformat()),
            )
            row = conn.execute("SELECT * FROM study_sessions WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_study_session(row)

    def get_study_session(self: DbProtocol, session_id: int) -> StudySession | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM study_sessions WHERE id = ?", (session_id,)).fetchone()
        return _row_to_study_session(row) if row else None

    def add_study_participant(self: DbProtocol, session_id: int, user_id: str, now: datetime) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO study_session_participants(session_id, user_id, is_active, joined_at)
                VALUES (?, ?, 1, ?)
                ON CONFLICT(session_id, user_id) DO UPDATE SET
                    is_active=1,
                    joined_at=excluded.joined_at,
                    left_at=NULL
                """,
                (session_id, user_id, now.isoformat()),
            )

    def deactivate_study_participant(self: DbProtocol, session_id: int, user_id: str, now: datetime) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE study_session_participants
                SET is_active = 0, left_at = ?
                WHERE session_id = ? AND user_id = ? AND is_active = 1
                """,
                (now.isoformat(), session_id, user_id),
            )
            remaining = conn.execute(
                "SELECT COUNT(*) AS c FROM study_session_participants WHERE session_id = ? AND is_active = 1",
                (session_id,),
            ).fetchone()
            if remaining and int(remaining["c"]) == 0:
                conn.execute("UPDATE study_sessions SET is_active = 0 WHERE id = ?", (session_id,))
        return cur.rowcount > 0

    def list_active_participants(self: DbProtocol, session_id: int) -> list[StudyParticipant]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM study_session_participants
                WHERE session_id = ? AND is_active = 1
                ORDER BY joined_at ASC
                """,
                (session_id,),
            ).fetchall()
        return [_row_to_participant(r) for r in rows]

    def active_study_session_id(self: DbProtocol, user_id: str) -> int | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT session_id FROM study_session_participants
                WHERE user_id = ? AND is_active = 1
                ORDER BY joined_at DESC
                LIMIT 1
                """,
                (user_id,),
            ).fetchone()
        return int(row["session_id"]) if row else None

    def add_study_message(self: DbProtocol, session_id: int, user_id: str, content: str, now: datetime) -> StudyMessage:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO study_session_messages(session_id, user_id, content, created_at) VALUES (?, ?, ?, ?)",
                (session_id, user_id, content, now.isoformat()),
            )
            row = conn.execute("SELECT * FROM study_session_messages WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_study_message(row)

    def list_study_messages(self: DbProtocol, session_id: int, limit: int = 100) -> list[StudyMessage]:
        capped = max(1, min(int(limit), 500))
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM (
                    SELECT * FROM study_session_messages
                    WHERE session_id = ?
                    ORDER BY created_at DESC, id DESC
                    LIMIT ?
                ) ORDER BY created_at ASC, id ASC
                """,
                (session_id, capped),
            ).fetchall()
        return [_row_to_study_message(r) for r in rows]

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


class BaseDatabase:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, str] = {
                1: """
                    CREATE TABLE ledgers (
                        user_id TEXT PRIMARY KEY,
                        xp INTEGER NOT NULL DEFAULT 0 CHECK(xp >= 0),
                        gems INTEGER NOT NULL DEFAULT 0 CHECK(gems >= 0),
                        current_streak INTEGER NOT NULL DEFAULT 0 CHECK(current_streak >= 0),
                        last_activity_date TEXT,
                        total_focus_time INTEGER NOT NULL DEFAULT 0 CHECK(total_focus_time >= 0),
                        total_tasks_completed INTEGER NOT NULL DEFAULT 0 CHECK(total_tasks_completed >= 0),
                        purchased_items_json TEXT NOT NULL DEFAULT '[]',
                        version INTEGER NOT NULL DEFAULT 1,
                        updated_at TEXT NOT NULL
                    );

                    CREATE TABLE processed_events (
                        user_id TEXT NOT NULL,
                        event_key TEXT NOT NULL,
                        kind TEXT NOT NULL,
                        applied_at TEXT NOT NULL,
                        PRIMARY KEY(user_id, event_key)
                    );

                    CREATE INDEX idx_processed_events_user_kind_applied
                    ON processed_events(user_id, kind, applied_at);
                """,
                2: """
                    CREATE TABLE daily_quests (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        quest_date TEXT NOT NULL,
                        kind TEXT NOT NULL,
                        title TEXT NOT NULL,
                        description TEXT NOT NULL,
                        xp_reward INTEGER NOT NULL,
                        gem_reward INTEGER NOT NULL,
                        completed INTEGER NOT NULL DEFAULT 0,
                        completed_at TEXT,
                        created_at TEXT NOT NULL,
                        UNIQUE(user_id, quest_date, kind)
                    );
                """,
                3: """
                    CREATE TABLE tasks (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        title TEXT NOT NULL,
                        description TEXT,
                        priority TEXT NOT NULL DEFAULT 'medium' CHECK(priority IN ('low', 'medium', 'high')),
                        category TEXT,
                        due_date TEXT,
                        estimated_time INTEGER,
                        completed INTEGER NOT NULL DEFAULT 0,
                        completed_at TEXT,
                        created_at TEXT NOT NULL
                    );
                    CREATE INDEX idx_tasks_user_created ON tasks(user_id, created_at);

                    CREATE TABLE focus_sessions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        duration_minutes INTEGER NOT NULL CHECK(duration_minutes > 0),
                        started_at TEXT NOT NULL,
                        ended_at TEXT,
                        completed INTEGER NOT NULL DEFAULT 0
                    );
                    CREATE INDEX idx_focus_sessions_user_started ON focus_sessions(user_id, started_at);
                """,
                4: """
                    CREATE TABLE profiles (
                        user_id TEXT PRIMARY KEY,
                        username TEXT UNIQUE COLLATE NOCASE,
                        created_at TEXT NOT NULL
                    );

                    CREATE TABLE friend_requests (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        sender_id TEXT NOT NULL,
                        receiver_id TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'pending'
                            CHECK(status IN ('pending', 'accepted', 'rejected')),
                        created_at TEXT NOT NULL
                    );

                    CREATE TABLE friendships (
                        user_id TEXT NOT NULL,
                        friend_id TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        PRIMARY KEY(user_id, friend_id)
                    );

                    CREATE TABLE study_sessions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        host_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        is_active INTEGER NOT NULL DEFAULT 1,
                        created_at TEXT NOT NULL
                    );

                    CREATE TABLE study_session_participants (
                        session_id INTEGER NOT NULL REFERENCES study_sessions(id),
                        user_id TEXT NOT NULL,
                        is_active INTEGER NOT NULL DEFAULT 1,
                        joined_at TEXT NOT NULL,
                        left_at TEXT,
                        PRIMARY KEY(session_id, user_id)
                    );

                    CREATE TABLE study_session_messages (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        session_id INTEGER NOT NULL REFERENCES study_sessions(id),
                        user_id TEXT NOT NULL,
                        content TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    );
                    CREATE INDEX idx_study_messages_session_created
                    ON study_session_messages(session_id, created_at);
                """,
            }

            now = datetime.now().isoformat(timespec="seconds")
            for version in sorted(migrations):
                if version in current:
                    continue
                conn.executescript(migrations[version])
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now),
                )
                logger.debug("Applied schema migration %s", version)

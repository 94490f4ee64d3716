from __future__ import annotations

from prodify.db_models import (
    FocusSession,
    FriendRequest,
    Ledger,
    Profile,
    Quest,
    StudyMessage,
    StudyParticipant,
    StudySession,
    Task,
)
from prodify.db_repo import (
    BaseDatabase,
    FocusSessionMixin,
    LedgerMixin,
    QuestMixin,
    SocialMixin,
    TaskMixin,
)

__all__ = [
    "Database",
    "FocusSession",
    "FriendRequest",
    "Ledger",
    "Profile",
    "Quest",
    "StudyMessage",
    "StudyParticipant",
    "StudySession",
    "Task",
]


class Database(BaseDatabase, LedgerMixin, QuestMixin, TaskMixin, FocusSessionMixin, SocialMixin):
    pass

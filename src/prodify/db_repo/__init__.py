from .base import BaseDatabase
from .ledger import LedgerMixin
from .quests import QuestMixin
from .tasks import TaskMixin
from .sessions import FocusSessionMixin
from .social import SocialMixin

__all__ = [
    "BaseDatabase",
    "LedgerMixin",
    "QuestMixin",
    "TaskMixin",
    "FocusSessionMixin",
    "SocialMixin",
]

from __future__ import annotations

import logging
from datetime import datetime

from prodify.db import Database
from prodify.errors import Conflict, DuplicateEvent
from prodify.events import DomainEvent, validate_event
from prodify.rewards import AppliedDelta, apply_event

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class EventProcessor:
    """Applies one domain event at a time to a user's ledger.

    Every write is a compare-and-swap on the ledger version. A lost race
    surfaces as ``Conflict`` from the store; the processor re-reads and
    re-applies up to ``max_attempts`` times before letting it propagate.
    """

    def __init__(self, db: Database, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        self.db = db
        self.max_attempts = max(1, max_attempts)

    def process(self, user_id: str, event: DomainEvent, now: datetime) -> AppliedDelta:
        validate_event(event)
        attempt = 1
        while True:
            try:
                return self._apply_once(user_id, event, now)
            except Conflict:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "Giving up on %s for user %s after %s conflicting attempts",
                        event.kind,
                        user_id,
                        attempt,
                    )
                    raise
                logger.info("Ledger conflict for user %s on %s, retrying (attempt %s)", user_id, event.kind, attempt)
                attempt += 1

    def _apply_once(self, user_id: str, event: DomainEvent, now: datetime) -> AppliedDelta:
        ledger = self.db.get_ledger(user_id)
        key = event.event_key
        if key is not None and self.db.has_processed_event(user_id, key):
            logger.warning("Rejected replay of %s for user %s", key, user_id)
            raise DuplicateEvent(f"Reward for {key} was already granted")

        updated, delta = apply_event(ledger, event, now.date())
        try:
            self.db.save_ledger(updated, ledger.version, now, event_key=key, event_kind=event.kind)
        except DuplicateEvent:
            logger.warning("Rejected replay of %s for user %s", key, user_id)
            raise

        logger.info(
            "Applied %s for user %s: xp %+d, gems %+d, level %s -> %s",
            event.kind,
            user_id,
            delta.xp,
            delta.gems,
            delta.level_before,
            delta.level_after,
        )
        return delta

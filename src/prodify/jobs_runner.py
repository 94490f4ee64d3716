from __future__ import annotations

import logging
from datetime import datetime

from prodify.config import Settings
from prodify.db import Database
from prodify.errors import ProdifyError
from prodify.processor import EventProcessor
from prodify.quests import evaluate_daily_quests
from prodify.time_utils import now_local

logger = logging.getLogger(__name__)

JOB_NAMES = ("evaluate_quests",)


def run_evaluate_quests(db: Database, now: datetime) -> int:
    """Re-evaluate today's quests for every ledger. Returns the number rewarded."""
    processor = EventProcessor(db)
    rewarded = 0
    failures = 0
    for user_id in db.list_ledger_user_ids():
        try:
            completed = evaluate_daily_quests(db, processor, user_id, now)
        except ProdifyError as exc:
            failures += 1
            logger.warning("quest evaluation failed user_id=%s kind=%s: %s", user_id, exc.kind, exc.message)
            continue
        if completed:
            logger.info("completed %s quest(s) user_id=%s", len(completed), user_id)
        rewarded += len(completed)
    logger.info("evaluate_quests done rewarded=%s failures=%s", rewarded, failures)
    return rewarded


def run_job(job_name: str, db: Database, settings: Settings) -> None:
    if job_name == "evaluate_quests":
        run_evaluate_quests(db, now_local(settings.tz))
    else:
        raise SystemExit(f"Unknown job '{job_name}'. Expected one of: {', '.join(JOB_NAMES)}")

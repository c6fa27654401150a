"""
Popularity scoring for editions.

score = saves*3 + follows*2 + clicks_30d*0.1, boosted x1.2 under 90 days of
age and halved past 365 days, rounded to an integer. Recomputed in batches;
each batch is one executemany UPDATE plus a commit, so an interrupted run
leaves earlier batches written and a rerun finishes the job.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models import Edition, as_utc
from utils.db import get_session
from utils.rounding import round_half_up

logger = logging.getLogger(__name__)

SAVE_WEIGHT = 3
FOLLOW_WEIGHT = 2
CLICK_WEIGHT = 0.1
RECENCY_MULTIPLIER = 1.2
RECENT_DAYS = 90
STALE_DAYS = 365
STALE_MULTIPLIER = 0.5
BATCH_SIZE = 100

SECONDS_PER_DAY = 60 * 60 * 24


def age_in_days(created_at: datetime, now: datetime) -> int:
    return int((now - as_utc(created_at)).total_seconds() // SECONDS_PER_DAY)


def compute_popularity_score(saves: int, follows: int, clicks: int, created_at: datetime, now: datetime) -> int:
    score = saves * SAVE_WEIGHT + follows * FOLLOW_WEIGHT + clicks * CLICK_WEIGHT
    days = age_in_days(created_at, now)
    if days < RECENT_DAYS:
        score *= RECENCY_MULTIPLIER
    if days > STALE_DAYS:
        score *= STALE_MULTIPLIER
    return round_half_up(score)


def _recompute(session: Session, now: datetime, batch_size: int) -> int:
    rows = session.execute(
        select(Edition.id, Edition.saves_count, Edition.follows_count, Edition.clicks_30d, Edition.created_at)
        .order_by(Edition.id)
    ).all()
    total = len(rows)
    logger.info("[popularity] processing %d editions", total)

    for start in range(0, total, batch_size):
        batch = rows[start:start + batch_size]
        params = [
            {
                "id": r.id,
                "popularity_score": compute_popularity_score(
                    r.saves_count or 0, r.follows_count or 0, r.clicks_30d or 0, r.created_at, now
                ),
            }
            for r in batch
        ]
        session.execute(update(Edition), params)
        session.commit()
        logger.info("[popularity] updated %d/%d editions", min(start + batch_size, total), total)
    return total


def recompute_popularity(session: Session | None = None, now: datetime | None = None,
                         batch_size: int = BATCH_SIZE) -> Dict[str, object]:
    now = now or datetime.now(timezone.utc)
    logger.info("[popularity] starting recomputation")
    if session is not None:
        updated = _recompute(session, now, batch_size)
    else:
        with get_session() as s:
            updated = _recompute(s, now, batch_size)
    logger.info("[popularity] recomputation completed")
    return {"success": True, "updated": updated}

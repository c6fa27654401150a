"""
Nightly popularity recompute (beat: ``popularity-nightly``).
"""

import logging
from celery import shared_task
from sqlalchemy.exc import OperationalError

from services.popularity import recompute_popularity
from services.tasks import RETRY_OPTIONS, DeadLetterTask

logger = logging.getLogger(__name__)


@shared_task(name='popularity.recompute', base=DeadLetterTask,
             autoretry_for=(OperationalError,), **RETRY_OPTIONS)
def recompute_popularity_task():
    result = recompute_popularity()
    logger.info("popularity recompute finished: %s", result)
    return result

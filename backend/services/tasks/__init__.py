"""
Background task plumbing: submission that never fails the request path, and
a base task that records final failures in ``dead_letters``.
"""
import json
import logging

from celery import Task

from models import DeadLetter
from utils.db import get_session

logger = logging.getLogger(__name__)

RETRY_OPTIONS = {
    'retry_backoff': True,
    'retry_backoff_max': 600,
    'retry_jitter': True,
    'max_retries': 3,
}


class DeadLetterTask(Task):

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error("task %s[%s] failed permanently: %s", self.name, task_id, exc)
        try:
            with get_session() as s:
                s.add(DeadLetter(
                    task_name=self.name,
                    task_id=task_id,
                    args=json.dumps({'args': list(args or ()), 'kwargs': dict(kwargs or {})}, default=str),
                    error=f"{type(exc).__name__}: {exc}"[:2000],
                ))
                s.commit()
        except Exception:
            logger.exception("could not record dead letter for %s[%s]", self.name, task_id)


def enqueue(task, *args, **kwargs) -> bool:
    """Submit ``task`` without waiting for it. Broker errors are logged, not raised."""
    try:
        task.delay(*args, **kwargs)
        return True
    except Exception as e:
        logger.error("enqueue %s failed: %s", getattr(task, 'name', task), e)
        return False

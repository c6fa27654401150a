"""
Celery application: the worker and beat entry point for background work
(embedding re-index, nightly popularity recompute).
"""

import os
from celery import Celery
from celery.schedules import crontab


def _flag(name: str) -> bool:
    return os.getenv(name, '').strip().lower() in {'1', 'true', 'yes', 'on'}


def make_celery() -> Celery:
    broker_url = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    backend_url = os.getenv('CELERY_RESULT_BACKEND', broker_url)

    app = Celery('schooltrack', broker=broker_url, backend=backend_url, include=[
        'services.tasks.retrieval_tasks',
        'services.tasks.popularity_tasks',
    ])

    app.conf.update(
        timezone='UTC',
        enable_utc=True,
        worker_max_tasks_per_child=100,
        task_acks_late=True,
        task_serializer='json',
        accept_content=['json'],
        result_serializer='json',
        broker_connection_retry_on_startup=True,
        task_always_eager=_flag('CELERY_TASK_ALWAYS_EAGER'),
        task_ignore_result=True,
    )

    app.conf.beat_schedule = {
        'popularity-nightly': {
            'task': 'popularity.recompute',
            'schedule': crontab(hour=3, minute=0),
        },
    }

    return app


celery_app = make_celery()

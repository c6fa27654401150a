"""
Embedding index maintenance tasks.
"""

import logging
from celery import shared_task
import requests

from services.embeddings import EmbeddingError, EmbeddingNotConfigured
from services.indexer import delete_embedding, index_model, upsert_embedding
from services.tasks import RETRY_OPTIONS, DeadLetterTask
from utils.db import get_session

logger = logging.getLogger(__name__)


@shared_task(name='retrieval.upsert_embedding', base=DeadLetterTask,
             autoretry_for=(requests.RequestException, EmbeddingError), **RETRY_OPTIONS)
def upsert_embedding_task(model_name: str, record_id: str):
    with get_session() as s:
        try:
            ok = upsert_embedding(s, model_name, record_id)
        except EmbeddingNotConfigured:
            logger.warning("embeddings disabled; skipped %s:%s", model_name, record_id)
            return {'indexed': False, 'skipped': True}
    return {'indexed': ok}


@shared_task(name='retrieval.delete_embedding', base=DeadLetterTask, **RETRY_OPTIONS)
def delete_embedding_task(model_name: str, record_id: str):
    with get_session() as s:
        return {'deleted': delete_embedding(s, model_name, record_id)}


@shared_task(name='retrieval.index_model', base=DeadLetterTask, **RETRY_OPTIONS)
def index_model_task(model_name: str):
    with get_session() as s:
        result = index_model(s, model_name)
    logger.info("full re-index of %s: %s", model_name, result)
    return result

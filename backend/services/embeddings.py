"""
Embedding API client and vector helpers.
Vectors are stored unit-length so cosine similarity is a dot product.
"""
from __future__ import annotations

import json
import logging
import math
import re
from typing import List, Sequence

import requests

from utils.config_handler import load_config

logger = logging.getLogger(__name__)

MAX_EMBED_CHARS = 32000

_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE_RE = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")
_PHONE_PAREN_RE = re.compile(r"\(\d{3}\)\s*\d{3}[-.]?\d{4}\b")
_SSN_RE = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")


class EmbeddingError(RuntimeError):
    pass


class EmbeddingNotConfigured(EmbeddingError):
    """No API key; indexing is switched off rather than failing."""


def create_text_embedding(text: str) -> List[float]:
    if not text or not text.strip():
        raise EmbeddingError("Cannot create embedding for empty text")
    cfg = load_config()
    if not cfg["embedding_api_key"]:
        raise EmbeddingNotConfigured("embedding API key is not configured")

    resp = requests.post(
        cfg["embedding_api_url"],
        headers={"Authorization": f"Bearer {cfg['embedding_api_key']}"},
        json={"model": cfg["embedding_model"], "input": text[:MAX_EMBED_CHARS], "encoding_format": "float"},
        timeout=cfg["embedding_timeout"],
    )
    if not resp.ok:
        logger.error("embedding API returned %s: %s", resp.status_code, resp.text[:200])
        raise EmbeddingError(f"embedding API returned {resp.status_code}")
    return list(resp.json()["data"][0]["embedding"])


def normalize(vector: Sequence[float]) -> List[float]:
    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        return list(vector)
    return [v / magnitude for v in vector]


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product of two unit vectors, in [-1, 1]."""
    if len(a) != len(b):
        raise ValueError("Vectors must have the same length")
    return sum(x * y for x, y in zip(a, b))


def strip_pii(text: str) -> str:
    cleaned = _EMAIL_RE.sub("[EMAIL]", text)
    cleaned = _SSN_RE.sub("[SSN]", cleaned)
    cleaned = _PHONE_RE.sub("[PHONE]", cleaned)
    cleaned = _PHONE_PAREN_RE.sub("[PHONE]", cleaned)
    return cleaned


def encode_vector(vector: Sequence[float]) -> str:
    return json.dumps(list(vector))


def parse_vector(raw: str) -> List[float]:
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.error("unparseable vector payload")
        return []
    return [float(v) for v in parsed] if isinstance(parsed, list) else []

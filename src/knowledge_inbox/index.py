from __future__ import annotations

import math
import re
from typing import List, Sequence

import numpy as np
import structlog

from .errors import EmbeddingError

_logger = structlog.get_logger()

DEFAULT_DIMENSIONS = 384

# Each token is spread over this many slots, `_SLOT_STRIDE` apart.
_TOKEN_SLOTS = 3
_SLOT_STRIDE = 127
_BIGRAM_WEIGHT = 0.5
_MIN_TOKEN_LEN = 3

_PUNCT_RE = re.compile(r"[^\w\s]+")


def tokenize(text: str) -> List[str]:
    normalized = _PUNCT_RE.sub(" ", text.lower())
    return [t for t in normalized.split() if len(t) >= _MIN_TOKEN_LEN]


def string_hash(value: str) -> int:
    """Rolling 31-multiplier hash over signed 32-bit arithmetic, made non-negative."""
    h = 0
    for ch in value:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise EmbeddingError(f"Vector length mismatch: {va.shape[0]} != {vb.shape[0]}")
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


class HashingEmbedder:
    """
    Deterministic bag-of-words embedding with a bigram signal.

    Earlier tokens weigh more (1/sqrt(position + 1)). No model, no network.
    """

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS) -> None:
        if dimensions <= 0:
            raise EmbeddingError("Embedding dimensions must be positive")
        self.dimensions = dimensions

    def embed(self, text: str) -> List[float]:
        if not isinstance(text, str):
            raise EmbeddingError(f"Cannot embed {type(text).__name__}; expected str")

        tokens = tokenize(text)
        vector = np.zeros(self.dimensions, dtype=np.float64)

        for i, token in enumerate(tokens):
            h = string_hash(token)
            weight = 1.0 / math.sqrt(i + 1)
            for k in range(_TOKEN_SLOTS):
                vector[(h + k * _SLOT_STRIDE) % self.dimensions] += weight

            if i > 0:
                bigram = string_hash(tokens[i - 1] + token)
                vector[bigram % self.dimensions] += _BIGRAM_WEIGHT

        norm = float(np.linalg.norm(vector))
        vector /= norm or 1.0

        _logger.debug(
            "embedding_generated",
            text_length=len(text),
            unique_tokens=len(set(tokens)),
            dimensions=self.dimensions,
        )
        return vector.tolist()

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)


__all__ = [
    "DEFAULT_DIMENSIONS",
    "HashingEmbedder",
    "cosine_similarity",
    "string_hash",
    "tokenize",
]

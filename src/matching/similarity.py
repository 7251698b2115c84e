# src/matching/similarity.py
"""Cosine similarity between embedding vectors.

Backed by numpy. Zero-norm vectors have no direction, so any similarity
involving one is reported as 0.0 rather than NaN.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Normalized dot product of two vectors, in [-1, 1].

    Raises:
        ValueError: If the vectors differ in length.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(
            f"Vectors must have the same length ({va.shape[0]} != {vb.shape[0]})"
        )

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    sim = float(np.dot(va, vb) / (norm_a * norm_b))
    # Rounding can push |sim| a hair past 1.0
    return max(-1.0, min(1.0, sim))


def cosine_scores(query: Sequence[float], vectors: Sequence[Sequence[float]]) -> list[float]:
    """Similarity of ``query`` against each row of ``vectors``.

    All rows must share the query's dimensionality.
    """
    if not vectors:
        return []
    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(vectors, dtype=np.float64)
    if m.ndim != 2 or m.shape[1] != q.shape[0]:
        raise ValueError(f"Expected rows of length {q.shape[0]}, got shape {m.shape}")

    q_norm = float(np.linalg.norm(q))
    if q_norm == 0.0:
        return [0.0] * m.shape[0]
    row_norms = np.linalg.norm(m, axis=1)
    safe = np.where(row_norms == 0.0, 1.0, row_norms)
    sims = (m @ q) / (safe * q_norm)
    sims = np.where(row_norms == 0.0, 0.0, sims)
    return np.clip(sims, -1.0, 1.0).tolist()

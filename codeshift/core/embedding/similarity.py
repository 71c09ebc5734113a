"""Cosine similarity over embedding vectors."""

from typing import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|).

    Returns 0.0 when either vector is empty or all zeros, or when the
    lengths differ.
    """
    if a is None or b is None or len(a) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


def cosine_similarities(query: Sequence[float], matrix: Sequence[Sequence[float]]) -> np.ndarray:
    """Vectorized cosine of one query against many rows.

    Rows with a different length or zero norm score 0.0.
    """
    n_rows = len(matrix)
    scores = np.zeros(n_rows, dtype=np.float64)
    if n_rows == 0 or query is None or len(query) == 0:
        return scores

    q = np.asarray(query, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    if q_norm == 0:
        return scores

    same_dim = [i for i, row in enumerate(matrix) if row is not None and len(row) == len(q)]
    if not same_dim:
        return scores

    m = np.asarray([matrix[i] for i in same_dim], dtype=np.float64)
    norms = np.linalg.norm(m, axis=1)
    dots = m @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / (norms * q_norm), 0.0)
    scores[same_dim] = sims
    return scores

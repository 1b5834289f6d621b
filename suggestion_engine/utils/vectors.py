"""Vector math for facet embeddings (numpy).

Catalog vectors are plain float lists of 384..1536 dimensions.  A vector
that is empty, all zeros, or a different length from the one it is being
compared with is treated as "unknown" and scores 0.0 rather than raising:
an unknown embedding is never evidence of a match.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def to_array(vector: Sequence[float] | None) -> np.ndarray | None:
    """Convert *vector* to a 1-D float array, or ``None`` if it carries no signal."""
    if vector is None or len(vector) == 0:
        return None
    arr = np.asarray(vector, dtype=np.float64).ravel()
    if not np.all(np.isfinite(arr)):
        return None
    if not np.any(arr):
        return None
    return arr


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Cosine similarity of two vectors, 0.0 when either is unknown or shapes differ."""
    va = to_array(a)
    vb = to_array(b)
    if va is None or vb is None or va.shape != vb.shape:
        return 0.0
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def cosine_similarities(
    query: Sequence[float] | None,
    pool: Sequence[Sequence[float] | None],
) -> list[float]:
    """Score *query* against every vector in *pool*.

    Pool vectors that match the query dimension are scored in one matrix
    product; the rest score 0.0.  Output order matches *pool*.
    """
    q = to_array(query)
    scores = [0.0] * len(pool)
    if q is None or not pool:
        return scores

    rows: list[np.ndarray] = []
    positions: list[int] = []
    for i, vec in enumerate(pool):
        arr = to_array(vec)
        if arr is not None and arr.shape == q.shape:
            rows.append(arr)
            positions.append(i)
    if not rows:
        return scores

    matrix = np.vstack(rows)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    sims = (matrix @ q) / norms
    for pos, sim in zip(positions, sims.tolist()):
        scores[pos] = float(sim)
    return scores

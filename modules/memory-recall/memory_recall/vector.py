"""Vector similarity helpers."""

from typing import Any, NamedTuple, Sequence

import numpy as np

from .errors import DimensionMismatchError


class VectorCandidate(NamedTuple):
    id: str
    vector: Sequence[float]
    data: Any = None


class SimilarityMatch(NamedTuple):
    id: str
    similarity: float
    data: Any = None


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1].

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    magnitude_a = np.linalg.norm(va)
    magnitude_b = np.linalg.norm(vb)
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    similarity = float(np.dot(va, vb) / (magnitude_a * magnitude_b))
    # Rounding can push identical vectors slightly past 1.0
    return max(-1.0, min(1.0, similarity))


def find_top_similar(
    query: Sequence[float], candidates: Sequence[VectorCandidate], k: int
) -> list[SimilarityMatch]:
    """Return the ``k`` candidates most similar to ``query``, best first.

    Ties keep input order (``sorted`` is stable).
    """
    if k <= 0 or not candidates:
        return []

    matches = [
        SimilarityMatch(c.id, cosine_similarity(query, c.vector), c.data)
        for c in candidates
    ]
    matches = sorted(matches, key=lambda m: m.similarity, reverse=True)
    return matches[:k]

"""Cosine similarity helpers shared by clustering and relevance scoring."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from src.utils.errors import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of two vectors.

    A zero vector is similar to nothing (similarity ``0.0``).

    Raises
    ------
    DimensionMismatchError
        If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(
            message=f"Cannot compare vectors of dimension {len(a)} and {len(b)}"
        )
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def similarity_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Return the pairwise cosine similarity matrix of *vectors*.

    Rows for zero vectors are all zeros.  All vectors must share one
    dimension.
    """
    if not vectors:
        return np.zeros((0, 0), dtype=np.float64)
    dims = {len(v) for v in vectors}
    if len(dims) > 1:
        raise DimensionMismatchError(
            message=f"Vectors have mixed dimensions: {sorted(dims)}"
        )
    matrix = np.asarray(vectors, dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1)
    safe = np.where(norms == 0.0, 1.0, norms)
    unit = matrix / safe[:, None]
    sims = unit @ unit.T
    zero = norms == 0.0
    sims[zero, :] = 0.0
    sims[:, zero] = 0.0
    return sims


def clamp_unit(value: float) -> float:
    """Clamp *value* into ``[0, 1]``."""
    return max(0.0, min(1.0, value))

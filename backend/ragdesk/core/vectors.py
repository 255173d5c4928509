"""Vector helpers shared by the embedder, the stores and the retriever."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .errors import DimensionMismatch


def l2_normalize(matrix: np.ndarray) -> np.ndarray:
    """Scale each row to unit length. All-zero rows are left as they are."""
    arr = np.asarray(matrix, dtype=np.float64)
    if arr.ndim == 1:
        norm = np.linalg.norm(arr)
        return arr / norm if norm > 0 else arr
    norms = np.linalg.norm(arr, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return arr / norms


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise DimensionMismatch(f"Cannot compare vectors of length {va.shape[0]} and {vb.shape[0]}")
    denom = np.linalg.norm(va) * np.linalg.norm(vb) + 1e-12
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


def as_matrix(vectors: Sequence[Sequence[float]], expected_dim: Optional[int] = None) -> np.ndarray:
    """Stack vectors into an ``n x d`` matrix, checking they share one dimension.

    Raises:
        DimensionMismatch: If lengths differ from each other or from expected_dim.
    """
    if not vectors:
        return np.zeros((0, expected_dim or 0), dtype=np.float64)

    dim = expected_dim if expected_dim is not None else len(vectors[0])
    for i, vec in enumerate(vectors):
        if len(vec) != dim:
            raise DimensionMismatch(
                f"Vector {i} has dimension {len(vec)}, expected {dim}"
            )
    return np.asarray(vectors, dtype=np.float64)

"""
Distance metrics and their similarity normalisation.

Distances follow pgvector's operators (``<=>``, ``<->``, ``<#>``). Similarities
are ``1 - normalized_distance`` so higher is always better:

- cosine: cosine distance is used as-is, similarity in ``[-1, 1]``
- l2: ``d / (1 + d)``, similarity ``1 / (1 + d)`` in ``(0, 1]``
- inner_product: ``-(a . b)``, similarity ``1 + a . b``
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Callable

import numpy as np

from .config import DistanceMetric

# Cosine distance reported when either vector has zero norm.
MAX_COSINE_DISTANCE = 2.0


def _as_pair(a: Sequence[float], b: Sequence[float]) -> tuple[np.ndarray, np.ndarray]:
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.ndim != 1:
        raise ValueError(f"Vectors must have equal length, got {va.shape} and {vb.shape}")
    return va, vb


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    va, vb = _as_pair(a, b)
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return MAX_COSINE_DISTANCE
    return 1.0 - float(np.dot(va, vb)) / norm


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    va, vb = _as_pair(a, b)
    return float(np.linalg.norm(va - vb))


def negative_inner_product(a: Sequence[float], b: Sequence[float]) -> float:
    va, vb = _as_pair(a, b)
    return -float(np.dot(va, vb))


_DISTANCES: dict[str, Callable[[Sequence[float], Sequence[float]], float]] = {
    "cosine": cosine_distance,
    "l2": euclidean_distance,
    "inner_product": negative_inner_product,
}


def distance(metric: DistanceMetric, a: Sequence[float], b: Sequence[float]) -> float:
    """Raw distance between *a* and *b* under *metric*."""
    try:
        fn = _DISTANCES[metric]
    except KeyError:
        raise ValueError(f"Unknown distance metric: {metric!r}") from None
    return fn(a, b)


def normalize_distance(metric: DistanceMetric, raw: float) -> float:
    if metric == "l2":
        return raw / (1.0 + raw)
    return raw


def similarity(metric: DistanceMetric, a: Sequence[float], b: Sequence[float]) -> float:
    """``1 - normalized_distance``; higher means more alike for every metric."""
    return 1.0 - normalize_distance(metric, distance(metric, a, b))


def similarities(
    metric: DistanceMetric,
    query: Sequence[float],
    matrix: np.ndarray,
) -> np.ndarray:
    """Vectorised ``similarity`` of *query* against each row of *matrix*."""
    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(matrix, dtype=np.float64)
    if m.size == 0:
        return np.zeros(0, dtype=np.float64)
    if m.ndim != 2 or m.shape[1] != q.shape[0]:
        raise ValueError(f"Query of length {q.shape[0]} does not match matrix {m.shape}")

    if metric == "cosine":
        norms = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
        dots = m @ q
        distances = np.full(m.shape[0], MAX_COSINE_DISTANCE)
        nonzero = norms != 0.0
        distances[nonzero] = 1.0 - dots[nonzero] / norms[nonzero]
        return 1.0 - distances
    if metric == "l2":
        raw = np.linalg.norm(m - q, axis=1)
        return 1.0 - raw / (1.0 + raw)
    if metric == "inner_product":
        return 1.0 + (m @ q)
    raise ValueError(f"Unknown distance metric: {metric!r}")

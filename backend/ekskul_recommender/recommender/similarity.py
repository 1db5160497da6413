"""
Similarity Engine
=================

Tính similarity giữa hai sparse vectors (mapping key -> weight).

Metrics:
1. Cosine: dot product trên shared keys / (full norm A * full norm B)
2. Pearson: mean-center trên shared keys rồi tính cùng tỉ số

Key không có trong mapping được coi là 0.
Không có shared key hoặc denominator = 0 thì similarity = 0.0.
"""

import logging
from typing import Hashable, List, Mapping, Tuple, Union

import numpy as np

from ekskul_recommender.recommender.models import SimilarityMetric

logger = logging.getLogger(__name__)

SparseVector = Mapping[Hashable, float]


def _shared_values(
    vector_a: SparseVector,
    vector_b: SparseVector
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Lấy values của hai vectors trên intersection của keys.

    Thứ tự theo vector_a để kết quả deterministic.
    """
    shared: List[Hashable] = [k for k in vector_a if k in vector_b]
    a = np.array([vector_a[k] for k in shared], dtype=float)
    b = np.array([vector_b[k] for k in shared], dtype=float)
    return a, b


def cosine_similarity(vector_a: SparseVector, vector_b: SparseVector) -> float:
    """
    Cosine similarity với numerator trên shared keys và denominator trên full norms.

    Profiles overlap ít sẽ bị penalize dù aligned trên phần overlap.

    Args:
        vector_a: Sparse vector A
        vector_b: Sparse vector B

    Returns:
        Similarity trong [-1, 1], 0.0 nếu không có shared key
    """
    a, b = _shared_values(vector_a, vector_b)
    if a.size == 0:
        return 0.0

    norm_a = np.linalg.norm(np.fromiter(vector_a.values(), dtype=float))
    norm_b = np.linalg.norm(np.fromiter(vector_b.values(), dtype=float))
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


def pearson_similarity(vector_a: SparseVector, vector_b: SparseVector) -> float:
    """
    Pearson correlation trên shared keys.

    Mean-center cả hai vectors (chỉ trên shared keys) để loại bỏ
    xu hướng rating trung bình của mỗi user.

    Args:
        vector_a: Sparse vector A
        vector_b: Sparse vector B

    Returns:
        Correlation trong [-1, 1], 0.0 nếu không có shared key hoặc variance = 0
    """
    a, b = _shared_values(vector_a, vector_b)
    if a.size == 0:
        return 0.0

    da = a - a.mean()
    db = b - b.mean()
    denom = np.sqrt(np.sum(da * da) * np.sum(db * db))
    if denom == 0:
        return 0.0

    return float(np.sum(da * db) / denom)


_METRICS = {
    SimilarityMetric.COSINE: cosine_similarity,
    SimilarityMetric.PEARSON: pearson_similarity,
}


def similarity(
    vector_a: SparseVector,
    vector_b: SparseVector,
    metric: Union[SimilarityMetric, str] = SimilarityMetric.COSINE
) -> float:
    """
    Tính similarity theo metric được config.

    Args:
        vector_a: Sparse vector A
        vector_b: Sparse vector B
        metric: "cosine" hoặc "pearson"

    Returns:
        Similarity score

    Raises:
        ValueError: Nếu metric không hợp lệ
    """
    return _METRICS[SimilarityMetric(metric)](vector_a, vector_b)


def passes_threshold(score: float, threshold: float) -> bool:
    """Neighbor chỉ được dùng khi similarity > threshold (strict)."""
    return score > threshold

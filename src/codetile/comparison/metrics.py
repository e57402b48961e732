"""Similarity metrics derived from matched token counts."""

from __future__ import annotations

from codetile.constants import SimilarityMetric


def coverage(matched: int, effective_length: int) -> float:
    """Fraction of a sequence's effective tokens covered by tiles."""
    if effective_length <= 0:
        return 0.0
    return min(1.0, matched / effective_length)


def compute_similarity(
    metric: SimilarityMetric,
    matched: int,
    effective_a: int,
    effective_b: int,
) -> float:
    cov_a = coverage(matched, effective_a)
    cov_b = coverage(matched, effective_b)
    match metric:
        case SimilarityMetric.AVG:
            return (cov_a + cov_b) / 2
        case SimilarityMetric.MAX:
            return max(cov_a, cov_b)
        case SimilarityMetric.MIN:
            return min(cov_a, cov_b)
        case SimilarityMetric.INTERSECTION:
            total = effective_a + effective_b
            return min(1.0, 2 * matched / total) if total > 0 else 0.0

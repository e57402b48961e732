"""Pairwise comparison of submissions and the resulting similarity matrix."""

from codetile.comparison.metrics import compute_similarity, coverage
from codetile.comparison.orchestrator import (
    ComparisonRun,
    compare_all,
    compare_pair,
    compare_submissions,
    select_comparisons,
)
from codetile.comparison.schemas import Comparison, SimilarityMatrix
from codetile.comparison.strategy import comparison_pairs

__all__ = [
    "Comparison",
    "ComparisonRun",
    "SimilarityMatrix",
    "compare_all",
    "compare_pair",
    "compare_submissions",
    "comparison_pairs",
    "compute_similarity",
    "coverage",
    "select_comparisons",
]

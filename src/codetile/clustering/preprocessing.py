"""Similarity matrix transforms applied before clustering.

All transforms take and return a symmetric matrix with a zero
diagonal, and keep zero entries at zero: a pair without any shared
tile never gains similarity through preprocessing.
"""

from __future__ import annotations

import numpy as np

from codetile.config import ClusteringOptions
from codetile.constants import Preprocessor


def preprocess(similarity: np.ndarray, options: ClusteringOptions) -> np.ndarray:
    """Apply the transform selected by ``options.preprocessor``."""
    match options.preprocessor:
        case Preprocessor.NONE:
            return similarity.copy()
        case Preprocessor.CDF:
            return cdf_transform(similarity)
        case Preprocessor.PERCENTILE:
            return percentile_transform(
                similarity, options.preprocessor_percentile
            )
        case Preprocessor.THRESHOLD:
            return threshold_transform(
                similarity, options.preprocessor_threshold
            )


def _pairwise_values(similarity: np.ndarray) -> np.ndarray:
    return similarity[np.triu_indices_from(similarity, k=1)]


def cdf_transform(similarity: np.ndarray) -> np.ndarray:
    """Replace each nonzero value by its empirical CDF among all pairs."""
    values = np.sort(_pairwise_values(similarity))
    result = np.zeros_like(similarity, dtype=float)
    if values.size == 0:
        return result
    ranks = np.searchsorted(values, similarity, side="right") / values.size
    nonzero = similarity > 0
    result[nonzero] = ranks[nonzero]
    np.fill_diagonal(result, 0.0)
    return result


def percentile_transform(
    similarity: np.ndarray, percentile: float
) -> np.ndarray:
    """Keep values at or above the given percentile (0..1) of all pairs."""
    values = _pairwise_values(similarity)
    if values.size == 0:
        return similarity.copy()
    cutoff = float(np.quantile(values, percentile))
    return threshold_transform(similarity, cutoff)


def threshold_transform(
    similarity: np.ndarray, threshold: float
) -> np.ndarray:
    """Zero every value below ``threshold``."""
    result = np.where(similarity >= threshold, similarity, 0.0)
    np.fill_diagonal(result, 0.0)
    return result

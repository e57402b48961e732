"""Agglomerative clustering with a selectable linkage rule."""

from __future__ import annotations

import numpy as np

from codetile.constants import InterClusterSimilarity


def _merged_row(
    row_i: np.ndarray,
    row_j: np.ndarray,
    size_i: int,
    size_j: int,
    linkage: InterClusterSimilarity,
) -> np.ndarray:
    """Similarity of the merged cluster to every other cluster."""
    match linkage:
        case InterClusterSimilarity.AVERAGE:
            return (size_i * row_i + size_j * row_j) / (size_i + size_j)
        case InterClusterSimilarity.MAX:
            return np.maximum(row_i, row_j)
        case InterClusterSimilarity.MIN:
            return np.minimum(row_i, row_j)


def agglomerative_clustering(
    similarity: np.ndarray,
    threshold: float,
    linkage: InterClusterSimilarity,
) -> list[list[int]]:
    """Merge the most similar pair of clusters while it exceeds ``threshold``.

    Starts from singletons. Inter-cluster similarity after a merge is
    derived from the two merged rows according to ``linkage``, which
    equals recomputing it over all member pairs. Among equally similar
    pairs the one with the smallest indices merges first.
    """
    n = len(similarity)
    clusters: list[list[int]] = [[i] for i in range(n)]
    sims = similarity.astype(float).copy()
    np.fill_diagonal(sims, -np.inf)

    while len(clusters) > 1:
        upper = np.triu(sims, k=1)
        upper[np.tril_indices_from(upper)] = -np.inf
        flat = int(np.argmax(upper))
        i, j = divmod(flat, len(clusters))
        if not upper[i, j] > threshold:
            break

        row = _merged_row(
            sims[i], sims[j], len(clusters[i]), len(clusters[j]), linkage
        )
        sims[i, :] = row
        sims[:, i] = row
        sims[i, i] = -np.inf
        sims = np.delete(np.delete(sims, j, axis=0), j, axis=1)
        clusters[i] = sorted(clusters[i] + clusters[j])
        del clusters[j]

    return sorted(clusters, key=lambda c: c[0])

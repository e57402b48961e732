"""Spectral clustering with a searched number of clusters.

The similarity matrix is turned into an affinity graph with a Gaussian
kernel on the distance ``1 - similarity``. Submissions are embedded
with the leading eigenvectors of the graph's normalized Laplacian and
grouped by k-means. The cluster count k is not known up front, so
several values are tried and the partition with the highest modularity
wins; equal scores prefer fewer clusters.

When there are more candidate k values than ``spectral_max_runs``, the
search samples ``spectral_min_runs`` of them at random and then lets a
Gaussian process over (k, score) propose the rest.

Rows left without any affinity (the kernel underflows for small
bandwidths and low similarities) are returned as singletons.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable

import numpy as np
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning
from sklearn.gaussian_process import GaussianProcessRegressor
from sklearn.gaussian_process.kernels import Matern

from codetile.clustering.quality import modularity
from codetile.config import ClusteringOptions
from codetile.constants import SPECTRAL_KMEANS_RESTARTS

logger = logging.getLogger(__name__)

_SCORE_TOLERANCE = 1e-12
_EXPLORATION_WEIGHT = 2.0


def gaussian_affinity(similarity: np.ndarray, bandwidth: float) -> np.ndarray:
    """Kernel affinities; pairs with zero similarity stay unconnected."""
    distance = 1.0 - similarity
    affinity = np.exp(-(distance**2) / (2.0 * bandwidth**2))
    affinity[similarity <= 0] = 0.0
    np.fill_diagonal(affinity, 0.0)
    return affinity


def spectral_embedding(affinity: np.ndarray) -> np.ndarray:
    """Eigenvectors of the symmetric normalized Laplacian, ascending."""
    degrees = affinity.sum(axis=1)
    inv_sqrt = np.zeros_like(degrees)
    np.divide(1.0, np.sqrt(degrees), out=inv_sqrt, where=degrees > 0)
    laplacian = np.eye(len(affinity)) - (
        inv_sqrt[:, None] * affinity * inv_sqrt[None, :]
    )
    _, vectors = np.linalg.eigh(laplacian)
    return vectors


def _kmeans_labels(
    vectors: np.ndarray,
    k: int,
    options: ClusteringOptions,
    rng: np.random.Generator,
) -> np.ndarray:
    if k == 1:
        return np.zeros(len(vectors), dtype=int)
    points = vectors[:, :k]
    norms = np.linalg.norm(points, axis=1, keepdims=True)
    points = points / np.maximum(norms, 1e-12)
    kmeans = KMeans(
        n_clusters=k,
        n_init=SPECTRAL_KMEANS_RESTARTS,
        max_iter=options.spectral_max_kmeans_iterations,
        random_state=int(rng.integers(2**31 - 1)),
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        return kmeans.fit_predict(points)


def spectral_clustering(
    similarity: np.ndarray,
    options: ClusteringOptions,
    rng: np.random.Generator,
) -> list[list[int]]:
    """Partition the rows of ``similarity`` into groups of indices."""
    n = len(similarity)
    affinity = gaussian_affinity(similarity, options.spectral_kernel_bandwidth)
    degrees = affinity.sum(axis=1)
    linked = [i for i in range(n) if degrees[i] > 0]
    unlinked = [i for i in range(n) if degrees[i] <= 0]
    if len(linked) < 2:
        logger.debug(
            "event=spectral_degenerate submissions=%d linked=%d",
            n,
            len(linked),
        )
        return [[i] for i in range(n)]

    graph = affinity[np.ix_(linked, linked)]
    vectors = spectral_embedding(graph)

    evaluated: dict[int, tuple[float, np.ndarray]] = {}

    def evaluate(k: int) -> float:
        if k not in evaluated:
            labels = _kmeans_labels(vectors, k, options, rng)
            evaluated[k] = (modularity(graph, labels), labels)
        return evaluated[k][0]

    for k in _candidate_counts(len(linked), options, rng, evaluate):
        evaluate(k)

    ranked = sorted(evaluated)
    best_score, best_labels = evaluated[ranked[0]]
    best_count = len(set(best_labels.tolist()))
    for k in ranked[1:]:
        score, labels = evaluated[k]
        count = len(set(labels.tolist()))
        better = score > best_score + _SCORE_TOLERANCE
        tied = abs(score - best_score) <= _SCORE_TOLERANCE
        if better or (tied and count < best_count):
            best_score, best_count, best_labels = score, count, labels

    logger.debug(
        "event=spectral_done submissions=%d unlinked=%d tried=%d"
        " clusters=%d modularity=%.4f",
        n,
        len(unlinked),
        len(evaluated),
        best_count,
        best_score,
    )
    groups: dict[int, list[int]] = {}
    for node, label in enumerate(best_labels.tolist()):
        groups.setdefault(label, []).append(linked[node])
    return sorted(
        [*groups.values(), *([i] for i in unlinked)], key=lambda g: g[0]
    )


def _candidate_counts(
    n: int,
    options: ClusteringOptions,
    rng: np.random.Generator,
    evaluate: Callable[[int], float],
) -> list[int]:
    """Cluster counts to try; may call ``evaluate`` to guide the search."""
    counts = list(range(1, n + 1))
    if n <= options.spectral_max_runs:
        return counts

    initial = rng.choice(
        counts, size=min(options.spectral_min_runs, n), replace=False
    )
    tried = sorted(int(k) for k in initial)
    scores = [evaluate(k) for k in tried]

    surrogate = GaussianProcessRegressor(
        kernel=Matern(length_scale=max(1.0, n / 10), nu=2.5),
        alpha=max(options.spectral_gp_variance, 1e-10),
        normalize_y=True,
    )
    while len(tried) < options.spectral_max_runs:
        remaining = np.array([k for k in counts if k not in set(tried)])
        if remaining.size == 0:
            break
        surrogate.fit(np.array(tried, dtype=float)[:, None], np.array(scores))
        mean, std = surrogate.predict(
            remaining.astype(float)[:, None], return_std=True
        )
        k = int(remaining[int(np.argmax(mean + _EXPLORATION_WEIGHT * std))])
        tried.append(k)
        scores.append(evaluate(k))
    return tried

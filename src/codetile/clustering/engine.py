"""Cluster the submissions of a similarity matrix.

Steps: pick the configured metric's values, preprocess them, set aside
submissions without any remaining similarity, run the configured
algorithm on the rest, and re-add the set-aside submissions as
singleton clusters.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from itertools import combinations

import numpy as np

from codetile.clustering.agglomerative import agglomerative_clustering
from codetile.clustering.preprocessing import preprocess
from codetile.clustering.quality import community_strengths
from codetile.clustering.schemas import Cluster, ClusteringResult
from codetile.clustering.spectral import spectral_clustering
from codetile.comparison.schemas import SimilarityMatrix
from codetile.config import ClusteringOptions
from codetile.constants import (
    CLUSTERING_SEED,
    ClusteringAlgorithm,
    InterClusterSimilarity,
)

logger = logging.getLogger(__name__)


def cluster_submissions(
    matrix: SimilarityMatrix,
    options: ClusteringOptions,
    *,
    ids: Sequence[str] | None = None,
    rng: np.random.Generator | None = None,
) -> ClusteringResult:
    """Group the submissions ``ids`` (default: all of ``matrix``).

    Returns an empty result when clustering is disabled or fewer than
    two submissions are eligible. ``rng`` drives every random choice of
    the spectral search; without one a fixed-seed generator is used.
    """
    order = tuple(matrix.ids if ids is None else ids)
    if not options.enabled or len(order) < 2:
        logger.debug(
            "event=clustering_skipped enabled=%s submissions=%d",
            options.enabled,
            len(order),
        )
        return ClusteringResult(metric=options.similarity_metric)

    raw = matrix.to_array(options.similarity_metric, order)
    processed = preprocess(raw, options)

    connected = [i for i in range(len(order)) if np.any(processed[i] > 0)]
    isolated = [i for i in range(len(order)) if i not in set(connected)]

    groups: list[list[int]] = []
    if len(connected) > 1:
        sub = processed[np.ix_(connected, connected)]
        for group in _run_algorithm(sub, options, rng):
            groups.append([connected[i] for i in group])
    else:
        isolated = sorted(isolated + connected)
    groups.extend([i] for i in isolated)

    strengths = community_strengths(processed, groups)
    clusters = [
        Cluster(
            members=frozenset(order[i] for i in group),
            community_strength=strength,
            average_similarity=_average_similarity(raw, group),
        )
        for group, strength in sorted(
            zip(groups, strengths, strict=True),
            key=lambda item: (-len(item[0]), min(item[0])),
        )
    ]
    logger.info(
        "event=clustering_done algorithm=%s submissions=%d clusters=%d"
        " isolated=%d",
        options.algorithm,
        len(order),
        len(clusters),
        len(isolated),
    )
    return ClusteringResult(
        clusters=tuple(clusters),
        algorithm=options.algorithm,
        metric=options.similarity_metric,
    )


def _run_algorithm(
    similarity: np.ndarray,
    options: ClusteringOptions,
    rng: np.random.Generator | None,
) -> list[list[int]]:
    match options.algorithm:
        case ClusteringAlgorithm.SPECTRAL:
            if rng is None:
                rng = np.random.default_rng(CLUSTERING_SEED)
            return spectral_clustering(similarity, options, rng)
        case ClusteringAlgorithm.AGGLOMERATIVE:
            linkage = options.agglomerative_inter_cluster_similarity
            if linkage is None:
                linkage = InterClusterSimilarity.AVERAGE
                logger.warning(
                    "event=linkage_unset using=%s"
                    " hint=set agglomerative_inter_cluster_similarity",
                    linkage,
                )
            return agglomerative_clustering(
                similarity, options.agglomerative_threshold, linkage
            )


def _average_similarity(raw: np.ndarray, group: Sequence[int]) -> float:
    pairs = list(combinations(group, 2))
    if not pairs:
        return 0.0
    return float(sum(raw[i, j] for i, j in pairs) / len(pairs))

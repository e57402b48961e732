"""Modularity of a partition of a weighted similarity graph."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def community_strengths(
    weights: np.ndarray, groups: Sequence[Sequence[int]]
) -> list[float]:
    """Each group's contribution to the modularity of the partition.

    For a graph without edges every contribution is 0.0.
    """
    degrees = weights.sum(axis=1)
    total = float(degrees.sum())
    if total <= 0:
        return [0.0 for _ in groups]
    strengths: list[float] = []
    for group in groups:
        idx = np.asarray(group, dtype=int)
        internal = float(weights[np.ix_(idx, idx)].sum()) / total
        expected = (float(degrees[idx].sum()) / total) ** 2
        strengths.append(internal - expected)
    return strengths


def modularity(weights: np.ndarray, labels: Sequence[int]) -> float:
    """Newman modularity of the partition given by ``labels``."""
    groups: dict[int, list[int]] = {}
    for node, label in enumerate(labels):
        groups.setdefault(int(label), []).append(node)
    return sum(community_strengths(weights, list(groups.values())))

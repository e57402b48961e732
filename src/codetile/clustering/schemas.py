"""Clustering output types."""

from __future__ import annotations

from dataclasses import dataclass, field

from codetile.constants import ClusteringAlgorithm, SimilarityMetric


@dataclass(frozen=True)
class Cluster:
    """A group of submissions that resemble each other.

    ``community_strength`` is the cluster's share of the modularity of
    the (preprocessed) similarity graph; ``average_similarity`` the mean
    raw similarity over all member pairs (0.0 for singletons).
    """

    members: frozenset[str]
    community_strength: float = 0.0
    average_similarity: float = 0.0

    def __len__(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class ClusteringResult:
    """Clusters of one run; empty when clustering was skipped."""

    clusters: tuple[Cluster, ...] = field(default_factory=tuple)
    algorithm: ClusteringAlgorithm | None = None
    metric: SimilarityMetric = SimilarityMetric.AVG

    @property
    def member_sets(self) -> set[frozenset[str]]:
        return {c.members for c in self.clusters}

    def cluster_of(self, submission_id: str) -> Cluster | None:
        for cluster in self.clusters:
            if submission_id in cluster.members:
                return cluster
        return None

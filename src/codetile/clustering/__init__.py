"""Clustering of submissions by pairwise similarity."""

from codetile.clustering.agglomerative import agglomerative_clustering
from codetile.clustering.engine import cluster_submissions
from codetile.clustering.preprocessing import (
    cdf_transform,
    percentile_transform,
    preprocess,
    threshold_transform,
)
from codetile.clustering.quality import community_strengths, modularity
from codetile.clustering.schemas import Cluster, ClusteringResult
from codetile.clustering.spectral import spectral_clustering

__all__ = [
    "Cluster",
    "ClusteringResult",
    "agglomerative_clustering",
    "cdf_transform",
    "cluster_submissions",
    "community_strengths",
    "modularity",
    "percentile_transform",
    "preprocess",
    "spectral_clustering",
    "threshold_transform",
]

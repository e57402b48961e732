"""Shared constants used across the detection pipeline.

All option vocabularies are StrEnums, so the same names work on the
command line, in environment variables and in log lines.
"""

from __future__ import annotations

from enum import StrEnum

# ── String Enums ─────────────────────────────────────────


class SimilarityMetric(StrEnum):
    """Scalar derived from a comparison's two coverages."""

    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    INTERSECTION = "INTERSECTION"


class ComparisonMode(StrEnum):
    """Which submission pairs are compared."""

    NORMAL = "normal"
    ORDERED = "ordered"

    @classmethod
    def from_name(cls, name: str) -> ComparisonMode | None:
        """Case-insensitive lookup; None for unknown names."""
        for mode in cls:
            if mode.value == name.strip().lower():
                return mode
        return None


class ClusteringAlgorithm(StrEnum):
    """Clustering algorithm applied to the similarity matrix."""

    SPECTRAL = "SPECTRAL"
    AGGLOMERATIVE = "AGGLOMERATIVE"


class Preprocessor(StrEnum):
    """Transform applied to the similarity matrix before clustering."""

    NONE = "NONE"
    CDF = "CDF"
    PERCENTILE = "PERCENTILE"
    THRESHOLD = "THRESHOLD"


class InterClusterSimilarity(StrEnum):
    """Linkage rule for agglomerative merging."""

    AVERAGE = "AVERAGE"
    MAX = "MAX"
    MIN = "MIN"


class Verbosity(StrEnum):
    """Command line verbosity levels."""

    QUIET = "quiet"
    DEFAULT = "default"
    LONG = "long"


class StageProgress(StrEnum):
    """Progress status for detection stage events."""

    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


# ── Matching ─────────────────────────────────────────────

FILE_END = "<FILE_END>"  # reserved marker kind, never matches

# ── Detection Defaults ───────────────────────────────────

DEFAULT_SIMILARITY_THRESHOLD = 0.0
DEFAULT_MAX_CONCURRENCY = 4

# ── Clustering Defaults ──────────────────────────────────

SPECTRAL_KERNEL_BANDWIDTH = 0.25
SPECTRAL_GP_VARIANCE = 0.05**2
SPECTRAL_MIN_RUNS = 5
SPECTRAL_MAX_RUNS = 50
SPECTRAL_MAX_KMEANS_ITERATIONS = 200
SPECTRAL_KMEANS_RESTARTS = 10
AGGLOMERATIVE_THRESHOLD = 0.2
PREPROCESSOR_THRESHOLD = 0.2
PREPROCESSOR_PERCENTILE = 0.5
CLUSTERING_SEED = 0

# ── Report ───────────────────────────────────────────────

SIMILARITY_DISTRIBUTION_SIZE = 100

# ── Stage Labels (user-facing) ─────────────────────────

STAGE_LABELS: dict[str, str] = {
    "load": "Loading and tokenizing submissions",
    "compare": "Comparing submissions",
    "cluster": "Clustering submissions",
}

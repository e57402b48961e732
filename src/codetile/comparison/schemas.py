"""Comparison results and the similarity matrix built from them."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from codetile.comparison.metrics import compute_similarity, coverage
from codetile.constants import SIMILARITY_DISTRIBUTION_SIZE, SimilarityMetric
from codetile.matching.schemas import Tile


@dataclass(frozen=True)
class Comparison:
    """Tiles found between two submissions, plus derived coverage.

    ``effective_length_*`` count the tokens left after base-code
    subtraction (marker tokens excluded).
    """

    submission_a: str
    submission_b: str
    tiles: tuple[Tile, ...]
    effective_length_a: int
    effective_length_b: int

    @property
    def matched_tokens(self) -> int:
        return sum(t.length for t in self.tiles)

    @property
    def coverage_a(self) -> float:
        return coverage(self.matched_tokens, self.effective_length_a)

    @property
    def coverage_b(self) -> float:
        return coverage(self.matched_tokens, self.effective_length_b)

    @property
    def pair(self) -> frozenset[str]:
        return frozenset((self.submission_a, self.submission_b))

    def similarity(
        self, metric: SimilarityMetric = SimilarityMetric.AVG
    ) -> float:
        return compute_similarity(
            metric,
            self.matched_tokens,
            self.effective_length_a,
            self.effective_length_b,
        )

    def swapped(self) -> Comparison:
        """The same comparison seen from ``submission_b``'s side."""
        return Comparison(
            submission_a=self.submission_b,
            submission_b=self.submission_a,
            tiles=tuple(t.swapped() for t in self.tiles),
            effective_length_a=self.effective_length_b,
            effective_length_b=self.effective_length_a,
        )


class SimilarityMatrix:
    """Pairwise similarities of a fixed set of submissions, per metric.

    Keys are unordered id pairs. Built once from the comparisons of a
    run and read-only afterwards.
    """

    def __init__(
        self,
        ids: Sequence[str],
        values: dict[SimilarityMetric, dict[frozenset[str], float]],
    ) -> None:
        self._ids = tuple(ids)
        self._values = {m: dict(v) for m, v in values.items()}

    @classmethod
    def from_comparisons(
        cls, ids: Sequence[str], comparisons: Iterable[Comparison]
    ) -> SimilarityMatrix:
        values: dict[SimilarityMetric, dict[frozenset[str], float]] = {
            m: {} for m in SimilarityMetric
        }
        for comparison in comparisons:
            for metric in SimilarityMetric:
                values[metric][comparison.pair] = comparison.similarity(metric)
        return cls(ids, values)

    @classmethod
    def from_pairs(
        cls,
        ids: Sequence[str],
        pairs: dict[tuple[str, str], float],
        metric: SimilarityMetric = SimilarityMetric.AVG,
    ) -> SimilarityMatrix:
        """Matrix holding a single metric, from ``(a, b) -> value``."""
        return cls(
            ids, {metric: {frozenset(k): v for k, v in pairs.items()}}
        )

    @property
    def ids(self) -> tuple[str, ...]:
        return self._ids

    @property
    def metrics(self) -> tuple[SimilarityMetric, ...]:
        return tuple(self._values)

    def get(
        self,
        a: str,
        b: str,
        metric: SimilarityMetric = SimilarityMetric.AVG,
    ) -> float:
        """Similarity of ``a`` and ``b``; 0.0 for pairs never compared."""
        if a == b:
            raise KeyError(f"no self-similarity for {a!r}")
        return self._values[metric].get(frozenset((a, b)), 0.0)

    def to_array(
        self,
        metric: SimilarityMetric = SimilarityMetric.AVG,
        ids: Sequence[str] | None = None,
    ) -> np.ndarray:
        """Dense symmetric matrix over ``ids`` with a zero diagonal."""
        order = self._ids if ids is None else tuple(ids)
        n = len(order)
        array = np.zeros((n, n), dtype=float)
        for i in range(n):
            for j in range(i + 1, n):
                value = self.get(order[i], order[j], metric)
                array[i, j] = array[j, i] = value
        return array

    def distribution(
        self,
        metric: SimilarityMetric = SimilarityMetric.AVG,
        buckets: int = SIMILARITY_DISTRIBUTION_SIZE,
    ) -> list[int]:
        """Histogram of pairwise values; 1.0 falls in the last bucket."""
        counts = [0] * buckets
        for value in self._values[metric].values():
            counts[min(int(value * buckets), buckets - 1)] += 1
        return counts

    def __len__(self) -> int:
        return len(self._ids)

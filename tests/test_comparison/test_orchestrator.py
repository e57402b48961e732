"""Tests for concurrent pairwise comparison."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from unittest.mock import patch

import pytest

from codetile.comparison import (
    compare_all,
    compare_pair,
    compare_submissions,
    comparison_pairs,
    select_comparisons,
)
from codetile.constants import ComparisonMode, SimilarityMetric
from codetile.errors import ComparisonTimeoutError, ConfigError
from codetile.matching import base_code_mask, match
from codetile.submissions import SubmissionRegistry
from conftest import make_registry


class TestComparePair:
    def test_symmetric(self, three_submissions: SubmissionRegistry) -> None:
        """Swapping the arguments mirrors tiles and keeps every metric."""
        alice = three_submissions.get("alice")
        bob = three_submissions.get("bob")
        forward = compare_pair(alice, bob, 3)
        backward = compare_pair(bob, alice, 3)

        assert forward.submission_a == "alice"
        assert backward.submission_a == "bob"
        assert backward.tiles == tuple(t.swapped() for t in forward.tiles)
        for metric in SimilarityMetric:
            assert forward.similarity(metric) == backward.similarity(metric)

    def test_identical_sequences(self) -> None:
        registry = make_registry({"a": "ABCD", "b": "ABCD"})
        comparison = compare_pair(registry.get("a"), registry.get("b"), 2)
        assert comparison.coverage_a == comparison.coverage_b == 1.0

    def test_rotated_sequences(self) -> None:
        registry = make_registry(
            {"a": ["IF", "VARDEF", "RETURN"], "b": ["VARDEF", "RETURN", "IF"]}
        )
        comparison = compare_pair(registry.get("a"), registry.get("b"), 2)
        assert comparison.coverage_a == pytest.approx(2 / 3)
        assert comparison.coverage_b == pytest.approx(2 / 3)

    @pytest.mark.parametrize("seed", range(10))
    def test_coverage_within_bounds(self, seed: int) -> None:
        rng = random.Random(seed)
        registry = make_registry(
            {
                "a": [rng.choice("ABC") for _ in range(rng.randint(0, 40))],
                "b": [rng.choice("ABC") for _ in range(rng.randint(0, 40))],
            }
        )
        comparison = compare_pair(registry.get("a"), registry.get("b"), 2)
        assert 0.0 <= comparison.coverage_a <= 1.0
        assert 0.0 <= comparison.coverage_b <= 1.0

    def test_effective_length_excludes_mask(self) -> None:
        registry = make_registry({"a": "PQRSABCD", "b": "PQRSABCD"})
        mask = frozenset(range(4))
        comparison = compare_pair(
            registry.get("a"),
            registry.get("b"),
            3,
            mask_first=mask,
            mask_second=mask,
        )
        assert comparison.effective_length_a == 4
        assert comparison.coverage_a == 1.0


class TestComparisonPairs:
    def test_normal_mode_pairs_each_once(
        self, three_submissions: SubmissionRegistry
    ) -> None:
        subs = three_submissions.valid_submissions()
        pairs = [(a.id, b.id) for a, b in comparison_pairs(subs)]
        assert pairs == [("alice", "bob"), ("alice", "carol"), ("bob", "carol")]

    def test_ordered_mode_compares_against_history(
        self, three_submissions: SubmissionRegistry
    ) -> None:
        subs = three_submissions.valid_submissions()
        pairs = [
            (a.id, b.id)
            for a, b in comparison_pairs(subs, ComparisonMode.ORDERED)
        ]
        assert pairs == [("bob", "alice"), ("carol", "alice"), ("carol", "bob")]


class TestCompareAll:
    async def test_full_matrix(self, three_submissions: SubmissionRegistry) -> None:
        run = await compare_all(three_submissions, 3)
        assert len(run.comparisons) == 3
        assert run.matrix.ids == ("alice", "bob", "carol")
        assert run.matrix.get("alice", "bob") > run.matrix.get("alice", "carol")

    async def test_result_independent_of_concurrency(
        self, three_submissions: SubmissionRegistry
    ) -> None:
        serial = await compare_all(three_submissions, 3, max_concurrency=1)
        parallel = await compare_all(three_submissions, 3, max_concurrency=8)
        assert serial.comparisons == parallel.comparisons

    async def test_failed_and_base_code_excluded(self) -> None:
        registry = make_registry(
            {
                "base": "PQRS",
                "a": "PQRSABCDE",
                "b": "PQRSABCDX",
                "broken": "ABCDE",
            },
            base_code="base",
            failed=["broken"],
        )
        run = await compare_all(registry, 3)
        assert [c.pair for c in run.comparisons] == [frozenset({"a", "b"})]
        assert run.matrix.ids == ("a", "b")

    async def test_base_code_masks_applied(self) -> None:
        """Tiles equal matching with the base code recomputed inline."""
        registry = make_registry(
            {"base": "PQRS", "a": "PQRSABCDE", "b": "ABCDEPQRS"},
            base_code="base",
        )
        run = await compare_all(registry, 3)
        (comparison,) = run.comparisons
        a, b = registry.get("a"), registry.get("b")
        base = registry.base_code
        assert base is not None
        assert list(comparison.tiles) == match(
            a.tokens, b.tokens, 3, base_code=base.tokens
        )
        mask_a = base_code_mask(a.tokens, base.tokens, 3)
        assert comparison.effective_length_a == a.token_count - len(mask_a)
        assert comparison.coverage_a == 1.0

    async def test_ordered_mode_orients_later_first(
        self, three_submissions: SubmissionRegistry
    ) -> None:
        run = await compare_all(
            three_submissions, 3, mode=ComparisonMode.ORDERED
        )
        assert [c.submission_a for c in run.comparisons] == [
            "bob",
            "carol",
            "carol",
        ]

    @pytest.mark.parametrize("min_tokens", [0, -3])
    async def test_invalid_minimum(
        self, three_submissions: SubmissionRegistry, min_tokens: int
    ) -> None:
        with pytest.raises(ConfigError):
            await compare_all(three_submissions, min_tokens)

    async def test_invalid_concurrency(
        self, three_submissions: SubmissionRegistry
    ) -> None:
        with pytest.raises(ConfigError, match="max_concurrency"):
            await compare_all(three_submissions, 3, max_concurrency=0)

    async def test_timeout_aborts_run(
        self,
        three_submissions: SubmissionRegistry,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        def slow_compare(*args: object, **kwargs: object) -> None:
            time.sleep(0.5)

        with (
            patch(
                "codetile.comparison.orchestrator.compare_pair",
                side_effect=slow_compare,
            ),
            caplog.at_level(logging.ERROR),
            pytest.raises(ComparisonTimeoutError),
        ):
            await compare_all(three_submissions, 3, timeout=0.05)
        assert "event=comparison_timeout" in caplog.text

    async def test_threshold_drops_stored_comparisons(
        self, three_submissions: SubmissionRegistry
    ) -> None:
        """Low pairs stay in the matrix but are not kept with their tiles."""
        full = await compare_all(three_submissions, 3)
        run = await compare_all(three_submissions, 3, threshold=0.6)

        assert run.compared == 3
        assert run.comparisons
        assert all(c.similarity() >= 0.6 for c in run.comparisons)
        assert len(run.comparisons) < len(full.comparisons)
        for a, b in [("alice", "carol"), ("bob", "carol")]:
            assert run.matrix.get(a, b) == full.matrix.get(a, b)

    async def test_threshold_uses_metric(
        self, three_submissions: SubmissionRegistry
    ) -> None:
        run = await compare_all(
            three_submissions, 3, metric=SimilarityMetric.MIN, threshold=0.6
        )
        assert all(
            c.similarity(SimilarityMetric.MIN) >= 0.6 for c in run.comparisons
        )

    async def test_invalid_threshold(
        self, three_submissions: SubmissionRegistry
    ) -> None:
        with pytest.raises(ConfigError, match="threshold"):
            await compare_all(three_submissions, 3, threshold=1.5)

    async def test_logs_summary(
        self,
        three_submissions: SubmissionRegistry,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.INFO):
            await compare_all(three_submissions, 3)
        assert "event=comparisons_done submissions=3 comparisons=3" in caplog.text


def test_sync_wrapper(three_submissions: SubmissionRegistry) -> None:
    run = compare_submissions(three_submissions, 3)
    assert len(run.comparisons) == 3
    assert run.duration_ms >= 0


class TestSelectComparisons:
    @pytest.fixture
    def comparisons(self, three_submissions: SubmissionRegistry):
        return asyncio.run(compare_all(three_submissions, 2)).comparisons

    def test_sorted_best_first(self, comparisons) -> None:
        selected = select_comparisons(comparisons)
        values = [c.similarity() for c in selected]
        assert values == sorted(values, reverse=True)
        assert selected[0].pair == frozenset({"alice", "bob"})

    def test_threshold_drops_low_values(self, comparisons) -> None:
        selected = select_comparisons(comparisons, threshold=0.6)
        assert all(c.similarity() >= 0.6 for c in selected)
        assert len(selected) < len(comparisons)

    def test_maximum_truncates(self, comparisons) -> None:
        assert len(select_comparisons(comparisons, maximum=1)) == 1

    def test_metric_selects_ranking(self, comparisons) -> None:
        selected = select_comparisons(comparisons, SimilarityMetric.MIN)
        values = [c.similarity(SimilarityMetric.MIN) for c in selected]
        assert values == sorted(values, reverse=True)

    @pytest.mark.parametrize("threshold", [-0.1, 1.5])
    def test_threshold_out_of_range(self, comparisons, threshold: float) -> None:
        with pytest.raises(ConfigError, match="threshold"):
            select_comparisons(comparisons, threshold=threshold)

    def test_non_positive_maximum(self, comparisons) -> None:
        with pytest.raises(ConfigError, match="maximum"):
            select_comparisons(comparisons, maximum=0)


def test_timeout_stops_running_matchers() -> None:
    """A timed-out run returns promptly instead of draining its workers."""
    rng = random.Random(7)
    registry = make_registry(
        {
            name: [rng.choice("AB") for _ in range(3000)]
            for name in ("a", "b", "c")
        }
    )
    start = time.monotonic()
    with pytest.raises(ComparisonTimeoutError):
        compare_submissions(registry, 2, timeout=0.2, max_concurrency=1)
    assert time.monotonic() - start < 3.0

"""Run every pairwise comparison of a registry and assemble the matrix.

Work fans out in two phases on a bounded pool of worker threads:

1. every valid submission is tiled against the base code (if any) to
   get its consumption mask;
2. every pair returned by :func:`comparison_pairs` is tiled using the
   cached masks.

Workers only return values. The results are assembled into the
:class:`SimilarityMatrix` by the caller once all of them are in; only
comparisons at or above the similarity threshold are kept after that.

The workers run on a pool owned by the call. When the timeout expires
the pool is shut down without waiting, queued work is cancelled and the
running matchers stop at their next poll of the stop flag.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any

from codetile.comparison.schemas import Comparison, SimilarityMatrix
from codetile.comparison.strategy import comparison_pairs
from codetile.constants import (
    DEFAULT_MAX_CONCURRENCY,
    ComparisonMode,
    SimilarityMetric,
)
from codetile.errors import ComparisonTimeoutError, ConfigError
from codetile.matching.greedy_tiling import (
    KeyFunction,
    StopCheck,
    base_code_mask,
    match,
)
from codetile.submissions.registry import SubmissionRegistry
from codetile.submissions.schemas import Submission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparisonRun:
    """Retained comparisons of a run plus the full similarity matrix.

    ``matrix`` holds the scalar of every compared pair; ``comparisons``
    only those at or above the threshold, with their tiles.
    ``compared`` counts all pairs that were tiled.
    """

    comparisons: tuple[Comparison, ...]
    matrix: SimilarityMatrix
    compared: int = 0
    duration_ms: float = 0.0


def compare_pair(
    first: Submission,
    second: Submission,
    min_token_match: int,
    *,
    mask_first: frozenset[int] = frozenset(),
    mask_second: frozenset[int] = frozenset(),
    key: KeyFunction | None = None,
    should_stop: StopCheck | None = None,
) -> Comparison:
    """Compare two submissions, oriented as ``first`` vs ``second``.

    The matcher always runs with the lexicographically smaller id as A,
    so both orientations yield the same tiles, mirrored.
    """
    if second.id < first.id:
        return compare_pair(
            second,
            first,
            min_token_match,
            mask_first=mask_second,
            mask_second=mask_first,
            key=key,
            should_stop=should_stop,
        ).swapped()

    tiles = match(
        first.tokens,
        second.tokens,
        min_token_match,
        mask_a=mask_first,
        mask_b=mask_second,
        key=key,
        should_stop=should_stop,
    )
    return Comparison(
        submission_a=first.id,
        submission_b=second.id,
        tiles=tuple(tiles),
        effective_length_a=_effective_length(first, mask_first),
        effective_length_b=_effective_length(second, mask_second),
    )


def _effective_length(submission: Submission, mask: frozenset[int]) -> int:
    return submission.token_count - len(mask)


async def compare_all(
    registry: SubmissionRegistry,
    min_token_match: int,
    *,
    mode: ComparisonMode = ComparisonMode.NORMAL,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    timeout: float | None = None,
    key: KeyFunction | None = None,
    metric: SimilarityMetric = SimilarityMetric.AVG,
    threshold: float = 0.0,
) -> ComparisonRun:
    """Compare every eligible pair of ``registry`` concurrently.

    Comparisons whose ``metric`` value is below ``threshold`` go into
    the matrix and are then dropped. Raises
    :class:`ComparisonTimeoutError` if ``timeout`` (seconds) expires
    before every comparison is done; nothing partial is kept.
    """
    if min_token_match <= 0:
        raise ConfigError(
            f"minimum token match must be positive, got {min_token_match}"
        )
    if max_concurrency < 1:
        raise ConfigError(
            f"max_concurrency must be at least 1, got {max_concurrency}"
        )
    if not 0.0 <= threshold <= 1.0:
        raise ConfigError(
            f"similarity threshold must be within [0, 1], got {threshold}"
        )

    start = time.monotonic()
    submissions = registry.valid_submissions()
    base = registry.base_code
    semaphore = asyncio.Semaphore(max_concurrency)
    stopped = threading.Event()
    executor = ThreadPoolExecutor(
        max_workers=max_concurrency, thread_name_prefix="codetile-compare"
    )
    loop = asyncio.get_running_loop()

    async def _bounded(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        async with semaphore:
            return await loop.run_in_executor(
                executor,
                partial(fn, *args, should_stop=stopped.is_set, **kwargs),
            )

    async def _run() -> list[Comparison]:
        masks = await _base_code_masks(
            submissions, base, min_token_match, key, _bounded
        )
        pairs = comparison_pairs(submissions, mode)
        return await asyncio.gather(
            *(
                _bounded(
                    compare_pair,
                    first,
                    second,
                    min_token_match,
                    mask_first=masks[first.id],
                    mask_second=masks[second.id],
                    key=key,
                )
                for first, second in pairs
            )
        )

    try:
        comparisons = await asyncio.wait_for(_run(), timeout=timeout)
    except TimeoutError as exc:
        logger.error(
            "event=comparison_timeout timeout_s=%.1f submissions=%d",
            timeout,
            len(submissions),
        )
        raise ComparisonTimeoutError(
            f"comparisons did not finish within {timeout} seconds"
        ) from exc
    finally:
        stopped.set()
        executor.shutdown(wait=False, cancel_futures=True)

    matrix = SimilarityMatrix.from_comparisons(
        [s.id for s in submissions], comparisons
    )
    retained = tuple(
        c for c in comparisons if c.similarity(metric) >= threshold
    )
    elapsed = (time.monotonic() - start) * 1000
    logger.info(
        "event=comparisons_done submissions=%d comparisons=%d retained=%d"
        " mode=%s duration_ms=%.0f",
        len(submissions),
        len(comparisons),
        len(retained),
        mode,
        elapsed,
    )
    return ComparisonRun(
        comparisons=retained,
        matrix=matrix,
        compared=len(comparisons),
        duration_ms=elapsed,
    )


async def _base_code_masks(
    submissions: Sequence[Submission],
    base: Submission | None,
    min_token_match: int,
    key: KeyFunction | None,
    bounded: Callable[..., Any],
) -> dict[str, frozenset[int]]:
    """Phase 1: consumption mask of every submission against base code."""
    if base is None:
        return {s.id: frozenset() for s in submissions}
    masks = await asyncio.gather(
        *(
            bounded(
                base_code_mask,
                s.tokens,
                base.tokens,
                min_token_match,
                key=key,
            )
            for s in submissions
        )
    )
    for submission, mask in zip(submissions, masks, strict=True):
        logger.debug(
            "event=base_code_mask submission=%s consumed=%d of %d",
            submission.id,
            len(mask),
            submission.token_count,
        )
    return {s.id: m for s, m in zip(submissions, masks, strict=True)}


def compare_submissions(
    registry: SubmissionRegistry,
    min_token_match: int,
    **kwargs: Any,
) -> ComparisonRun:
    """Synchronous wrapper around :func:`compare_all`."""
    return asyncio.run(compare_all(registry, min_token_match, **kwargs))


def select_comparisons(
    comparisons: Sequence[Comparison],
    metric: SimilarityMetric = SimilarityMetric.AVG,
    threshold: float = 0.0,
    maximum: int | None = None,
) -> list[Comparison]:
    """Comparisons worth reporting, best first.

    Comparisons whose ``metric`` value is below ``threshold`` are
    dropped; at most ``maximum`` are kept (all when None). Equal scores
    are ordered by submission ids.
    """
    if not 0.0 <= threshold <= 1.0:
        raise ConfigError(
            f"similarity threshold must be within [0, 1], got {threshold}"
        )
    if maximum is not None and maximum < 1:
        raise ConfigError(
            f"maximum number of comparisons must be positive, got {maximum}"
        )
    kept = [c for c in comparisons if c.similarity(metric) >= threshold]
    kept.sort(
        key=lambda c: (
            -c.similarity(metric),
            c.submission_a,
            c.submission_b,
        )
    )
    return kept if maximum is None else kept[:maximum]

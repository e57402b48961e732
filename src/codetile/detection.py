"""Detection run: load submissions, compare every pair, cluster.

Stages run in order and each one is timed. A failing stage emits an
ERROR event and re-raises; there is no partial result.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

import numpy as np

from codetile.clustering.engine import cluster_submissions
from codetile.clustering.schemas import ClusteringResult
from codetile.comparison.orchestrator import compare_all, select_comparisons
from codetile.comparison.schemas import Comparison, SimilarityMatrix
from codetile.config import DetectionOptions, Settings
from codetile.constants import ComparisonMode, StageProgress
from codetile.errors import ConfigError
from codetile.events import ProgressCallback, StageEvent
from codetile.frontends import Language, get_language
from codetile.matching.greedy_tiling import KeyFunction
from codetile.submissions.loader import load_submissions
from codetile.submissions.registry import SubmissionRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class StageStatus:
    """Status of a detection stage."""

    name: str
    ok: bool
    duration_ms: float = 0.0
    error: str | None = None


@dataclass
class DetectionResult:
    """Everything a report needs from one run.

    ``comparisons`` holds only the retained comparisons (threshold and
    maximum applied, best first). Comparisons below the threshold are
    not kept; their similarity only survives in ``matrix``.
    ``compared`` counts every pair that was tiled.
    """

    comparisons: list[Comparison]
    matrix: SimilarityMatrix
    clustering: ClusteringResult
    compared: int = 0
    comparison_mode: ComparisonMode = ComparisonMode.NORMAL
    failed_submissions: list[str] = field(default_factory=lambda: list[str]())
    base_code: str | None = None
    stages: list[StageStatus] = field(
        default_factory=lambda: list[StageStatus]()
    )
    total_duration_ms: float = 0.0


class _StageRunner:
    """Times stages, records their status and reports progress."""

    def __init__(self, on_progress: ProgressCallback | None) -> None:
        self._on_progress = on_progress
        self.stages: list[StageStatus] = []

    def _report(self, event: StageEvent) -> None:
        if self._on_progress:
            self._on_progress(event)

    async def run(
        self, name: str, fn: Callable[[], Awaitable[T]]
    ) -> T:
        self._report(
            StageEvent(name=name, status=StageProgress.RUNNING)
        )
        start = time.monotonic()
        try:
            output = await fn()
        except Exception as exc:
            elapsed = (time.monotonic() - start) * 1000
            logger.error(
                "event=stage_failed stage=%s error=%s", name, exc
            )
            self.stages.append(
                StageStatus(name, ok=False, duration_ms=elapsed, error=str(exc))
            )
            self._report(
                StageEvent(
                    name=name,
                    status=StageProgress.ERROR,
                    message=str(exc),
                    duration_ms=elapsed,
                )
            )
            raise
        elapsed = (time.monotonic() - start) * 1000
        self.stages.append(StageStatus(name, ok=True, duration_ms=elapsed))
        self._report(
            StageEvent(
                name=name, status=StageProgress.DONE, duration_ms=elapsed
            )
        )
        return output


async def analyze_registry(
    registry: SubmissionRegistry,
    options: DetectionOptions,
    min_token_match: int,
    *,
    settings: Settings | None = None,
    on_progress: ProgressCallback | None = None,
    rng: np.random.Generator | None = None,
    key: KeyFunction | None = None,
) -> DetectionResult:
    """Compare and cluster the submissions of an already loaded registry.

    Without a language to ask, an unset comparison mode means normal.
    """
    return await _analyze(
        registry,
        options,
        min_token_match,
        settings or Settings(),
        _StageRunner(on_progress),
        mode=options.comparison_mode or ComparisonMode.NORMAL,
        rng=rng,
        key=key,
    )


def comparison_mode_for(
    options: DetectionOptions, language: Language
) -> ComparisonMode:
    """The configured mode, else ordered for order-sensitive languages."""
    if options.comparison_mode is not None:
        return options.comparison_mode
    if language.expects_submission_order:
        return ComparisonMode.ORDERED
    return ComparisonMode.NORMAL


async def _analyze(
    registry: SubmissionRegistry,
    options: DetectionOptions,
    min_token_match: int,
    cfg: Settings,
    runner: _StageRunner,
    *,
    mode: ComparisonMode,
    rng: np.random.Generator | None,
    key: KeyFunction | None = None,
) -> DetectionResult:
    t0 = time.monotonic()
    run = await runner.run(
        "compare",
        lambda: compare_all(
            registry,
            min_token_match,
            mode=mode,
            max_concurrency=cfg.max_concurrency,
            timeout=cfg.comparison_timeout_seconds,
            key=key,
            metric=options.similarity_metric,
            threshold=options.similarity_threshold,
        ),
    )
    retained = select_comparisons(
        run.comparisons,
        options.similarity_metric,
        options.similarity_threshold,
        options.maximum_comparisons,
    )
    matrix = run.matrix

    async def _cluster() -> ClusteringResult:
        return cluster_submissions(matrix, options.clustering, rng=rng)

    clustering = await runner.run("cluster", _cluster)

    base = registry.base_code
    return DetectionResult(
        comparisons=retained,
        matrix=matrix,
        clustering=clustering,
        compared=run.compared,
        comparison_mode=mode,
        failed_submissions=[s.id for s in registry.failed_submissions()],
        base_code=base.id if base else None,
        stages=runner.stages,
        total_duration_ms=(time.monotonic() - t0) * 1000,
    )


async def run_detection(
    root: str | Path,
    options: DetectionOptions | None = None,
    settings: Settings | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    rng: np.random.Generator | None = None,
) -> DetectionResult:
    """Run the full detection over the submissions below ``root``.

    Raises ConfigError for an unknown language, a missing base code or
    fewer than two submissions that could be tokenized.
    """
    opts = options or DetectionOptions()
    cfg = settings or Settings()
    language = get_language(opts.language)
    min_token_match = opts.min_token_match or language.minimum_token_match
    mode = comparison_mode_for(opts, language)
    runner = _StageRunner(on_progress)
    t0 = time.monotonic()

    async def _load() -> SubmissionRegistry:
        registry = await asyncio.to_thread(
            load_submissions, Path(root), language, opts, cfg
        )
        valid = len(registry.valid_submissions())
        if valid < 2:
            raise ConfigError(
                f"not enough valid submissions in {root}: found {valid},"
                " need at least 2"
            )
        return registry

    registry = await runner.run("load", _load)
    result = await _analyze(
        registry, opts, min_token_match, cfg, runner, mode=mode, rng=rng
    )
    result.total_duration_ms = (time.monotonic() - t0) * 1000
    logger.info(
        "event=detection_done submissions=%d compared=%d retained=%d"
        " clusters=%d mode=%s duration_ms=%.0f",
        len(result.matrix),
        result.compared,
        len(result.comparisons),
        len(result.clustering.clusters),
        mode,
        result.total_duration_ms,
    )
    return result


def detect(
    root: str | Path,
    options: DetectionOptions | None = None,
    settings: Settings | None = None,
    on_progress: ProgressCallback | None = None,
) -> DetectionResult:
    """Synchronous wrapper around :func:`run_detection`."""
    return asyncio.run(run_detection(root, options, settings, on_progress))

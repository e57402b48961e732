"""CLI entry point: ``codetile [options] ROOT``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from codetile import __version__
from codetile.config import (
    DetectionOptions,
    build_clustering_options,
    build_options,
    load_settings,
)
from codetile.constants import (
    ClusteringAlgorithm,
    ComparisonMode,
    InterClusterSimilarity,
    Preprocessor,
    SimilarityMetric,
    StageProgress,
)
from codetile.detection import DetectionResult, detect
from codetile.errors import CodetileError
from codetile.events import ProgressCallback, StageEvent
from codetile.frontends import LANGUAGES
from codetile.logging_config import setup_logging, verbosity_to_level

logger = logging.getLogger(__name__)

_SUMMARY_CLUSTERS = 10


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"codetile {__version__}")
        return
    if args.root is None:
        parser.print_help()
        return

    setup_logging(verbosity_to_level(args.verbosity))

    try:
        settings = load_settings()
        options = _options_from_args(args)
        root = Path(args.root).resolve()
        print(f"Checking: {root}")
        result = detect(
            root,
            options,
            settings,
            on_progress=_progress_printer(args.verbosity == "long"),
        )
    except CodetileError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    _print_summary(result, options.similarity_metric)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="codetile",
        description=(
            "Detect shared structure across source code submissions "
            "and group similar submissions into clusters."
        ),
    )
    parser.add_argument(
        "root",
        nargs="?",
        default=None,
        help="Directory holding one child per submission",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--language",
        "-l",
        choices=sorted(LANGUAGES),
        default="python",
        help="Language frontend (default: python)",
    )
    parser.add_argument(
        "--base-code",
        "-bc",
        default=None,
        help="Name of the submission holding the base code",
    )
    parser.add_argument(
        "--verbosity",
        "-v",
        choices=["quiet", "long"],
        default=None,
        help="Verbosity of logging (default: progress at INFO level)",
    )
    parser.add_argument(
        "--subdirectory",
        "-S",
        default=None,
        help="Look for sources only in this subdirectory of each submission",
    )
    parser.add_argument(
        "--suffixes",
        "-p",
        default=None,
        help="Comma-separated file suffixes (default: the language's)",
    )
    parser.add_argument(
        "--exclude-file",
        "-x",
        default=None,
        help="File listing file name patterns to ignore",
    )
    parser.add_argument(
        "--min-tokens",
        "-t",
        type=int,
        default=None,
        help="Minimum tile length (default: the language's)",
    )
    parser.add_argument(
        "--similarity-threshold",
        "-m",
        type=float,
        default=0.0,
        help="Drop comparisons below this similarity (default: 0.0)",
    )
    parser.add_argument(
        "--shown-comparisons",
        "-n",
        type=int,
        default=None,
        help="Maximum number of comparisons to show (default: all)",
    )
    parser.add_argument(
        "--comparison-mode",
        "-c",
        default=None,
        help="normal or ordered (default: chosen by the language)",
    )
    parser.add_argument(
        "--metric",
        choices=[m.value for m in SimilarityMetric],
        default=SimilarityMetric.AVG.value,
        help="Similarity metric used to rank comparisons (default: AVG)",
    )

    clustering = parser.add_argument_group("clustering")
    clustering.add_argument(
        "--cluster-skip",
        action="store_true",
        help="Skip clustering",
    )
    clustering.add_argument(
        "--cluster-alg",
        choices=[a.value for a in ClusteringAlgorithm],
        default=ClusteringAlgorithm.SPECTRAL.value,
        help="Clustering algorithm (default: SPECTRAL)",
    )
    clustering.add_argument(
        "--cluster-metric",
        choices=[m.value for m in SimilarityMetric],
        default=SimilarityMetric.AVG.value,
        help="Similarity metric used for clustering (default: AVG)",
    )
    clustering.add_argument(
        "--cluster-spectral-bandwidth", type=float, default=None
    )
    clustering.add_argument(
        "--cluster-spectral-noise", type=float, default=None
    )
    clustering.add_argument(
        "--cluster-spectral-min-runs", type=int, default=None
    )
    clustering.add_argument(
        "--cluster-spectral-max-runs", type=int, default=None
    )
    clustering.add_argument(
        "--cluster-spectral-kmeans-iterations", type=int, default=None
    )
    clustering.add_argument(
        "--cluster-agglomerative-threshold", type=float, default=None
    )
    clustering.add_argument(
        "--cluster-agglomerative-inter-cluster-similarity",
        choices=[s.value for s in InterClusterSimilarity],
        default=None,
        help="Linkage rule for agglomerative clustering",
    )

    preprocessing = clustering.add_mutually_exclusive_group()
    preprocessing.add_argument(
        "--cluster-pp-none",
        dest="preprocessor",
        action="store_const",
        const=Preprocessor.NONE.value,
        help="No preprocessing",
    )
    preprocessing.add_argument(
        "--cluster-pp-cdf",
        dest="preprocessor",
        action="store_const",
        const=Preprocessor.CDF.value,
        help="Cumulative distribution function preprocessing (default)",
    )
    preprocessing.add_argument(
        "--cluster-pp-percentile",
        type=float,
        default=None,
        metavar="P",
        help="Keep similarities at or above percentile P (0..1)",
    )
    preprocessing.add_argument(
        "--cluster-pp-threshold",
        type=float,
        default=None,
        metavar="T",
        help="Keep similarities at or above T",
    )

    return parser


def _options_from_args(args: argparse.Namespace) -> DetectionOptions:
    """Turn parsed arguments into validated DetectionOptions."""
    mode: ComparisonMode | None = None
    if args.comparison_mode is not None:
        mode = ComparisonMode.from_name(args.comparison_mode)
        if mode is None:
            logger.warning(
                "event=unknown_comparison_mode mode=%s using=%s",
                args.comparison_mode,
                ComparisonMode.NORMAL,
            )
            mode = ComparisonMode.NORMAL

    clustering_values: dict[str, Any] = {
        "enabled": not args.cluster_skip,
        "algorithm": args.cluster_alg,
        "similarity_metric": args.cluster_metric,
        "agglomerative_inter_cluster_similarity": (
            args.cluster_agglomerative_inter_cluster_similarity
        ),
    }
    optional = {
        "spectral_kernel_bandwidth": args.cluster_spectral_bandwidth,
        "spectral_gp_variance": args.cluster_spectral_noise,
        "spectral_min_runs": args.cluster_spectral_min_runs,
        "spectral_max_runs": args.cluster_spectral_max_runs,
        "spectral_max_kmeans_iterations": (
            args.cluster_spectral_kmeans_iterations
        ),
        "agglomerative_threshold": args.cluster_agglomerative_threshold,
    }
    clustering_values.update(
        {k: v for k, v in optional.items() if v is not None}
    )
    if args.cluster_pp_percentile is not None:
        clustering_values["preprocessor"] = Preprocessor.PERCENTILE
        clustering_values["preprocessor_percentile"] = (
            args.cluster_pp_percentile
        )
    elif args.cluster_pp_threshold is not None:
        clustering_values["preprocessor"] = Preprocessor.THRESHOLD
        clustering_values["preprocessor_threshold"] = args.cluster_pp_threshold
    elif args.preprocessor is not None:
        clustering_values["preprocessor"] = args.preprocessor

    return build_options(
        language=args.language,
        min_token_match=args.min_tokens,
        similarity_threshold=args.similarity_threshold,
        maximum_comparisons=args.shown_comparisons,
        similarity_metric=args.metric,
        comparison_mode=mode,
        base_code=args.base_code,
        subdirectory=args.subdirectory,
        suffixes=args.suffixes or (),
        exclusion_file=args.exclude_file,
        clustering=build_clustering_options(**clustering_values),
    )


def _progress_printer(verbose: bool) -> ProgressCallback:
    def on_progress(event: StageEvent) -> None:
        if verbose and event.status == StageProgress.RUNNING:
            print(f"  {event.label}...")

    return on_progress


def _print_summary(
    result: DetectionResult, metric: SimilarityMetric
) -> None:
    """Plain-text overview of the run on stdout."""
    print(
        f"\n{len(result.matrix)} submissions compared, "
        f"{result.compared} comparisons "
        f"({result.total_duration_ms:.0f}ms)"
    )
    if result.base_code:
        print(f"Base code: {result.base_code}")
    if result.failed_submissions:
        print(
            "Failed to parse: " + ", ".join(result.failed_submissions)
        )

    print(f"\nTop comparisons ({metric}):")
    if not result.comparisons:
        print("  (none above threshold)")
    for comparison in result.comparisons:
        print(
            f"  {comparison.similarity(metric):6.1%}  "
            f"{comparison.submission_a} <-> {comparison.submission_b}  "
            f"({comparison.matched_tokens} tokens, "
            f"{len(comparison.tiles)} tiles)"
        )

    clusters = [c for c in result.clustering.clusters if len(c) > 1]
    if clusters:
        print(f"\nClusters ({result.clustering.algorithm}):")
        for cluster in clusters[:_SUMMARY_CLUSTERS]:
            members = ", ".join(sorted(cluster.members))
            print(
                f"  [{cluster.average_similarity:6.1%}] {members}"
            )


if __name__ == "__main__":
    main()

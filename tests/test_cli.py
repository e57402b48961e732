"""Tests for CLI argument parsing and the main entry point."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from codetile.cli import _build_parser, _options_from_args, main
from codetile.constants import (
    ClusteringAlgorithm,
    ComparisonMode,
    InterClusterSimilarity,
    Preprocessor,
    SimilarityMetric,
)
from codetile.errors import ConfigError


def _options(*argv: str):
    return _options_from_args(_build_parser().parse_args(["/tmp/subs", *argv]))


class TestArgParser:
    def test_version_flag(self) -> None:
        args = _build_parser().parse_args(["--version"])
        assert args.version is True

    def test_defaults(self) -> None:
        args = _build_parser().parse_args(["/tmp/subs"])
        assert args.root == "/tmp/subs"
        assert args.language == "python"
        assert args.base_code is None
        assert args.min_tokens is None
        assert args.similarity_threshold == 0.0
        assert args.shown_comparisons is None
        assert args.cluster_skip is False
        assert args.preprocessor is None
        assert args.comparison_mode is None

    def test_short_options(self) -> None:
        args = _build_parser().parse_args(
            [
                "/tmp/subs",
                "-l", "java",
                "-bc", "template",
                "-t", "7",
                "-m", "0.3",
                "-n", "20",
                "-S", "src",
                "-p", ".java,.jav",
                "-x", "exclude.txt",
                "-v", "long",
                "-c", "ordered",
            ]
        )
        assert args.language == "java"
        assert args.base_code == "template"
        assert args.min_tokens == 7
        assert args.similarity_threshold == 0.3
        assert args.shown_comparisons == 20
        assert args.subdirectory == "src"
        assert args.suffixes == ".java,.jav"
        assert args.exclude_file == "exclude.txt"
        assert args.verbosity == "long"
        assert args.comparison_mode == "ordered"

    def test_unknown_language_rejected(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["/tmp/subs", "-l", "cobol"])

    def test_preprocessors_mutually_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(
                ["/tmp/subs", "--cluster-pp-none", "--cluster-pp-threshold", "0.3"]
            )


class TestOptionsFromArgs:
    def test_defaults(self) -> None:
        options = _options()
        assert options.min_token_match is None
        assert options.comparison_mode is None
        assert options.clustering.enabled
        assert options.clustering.preprocessor == Preprocessor.CDF
        assert options.clustering.agglomerative_inter_cluster_similarity is None

    def test_detection_values(self) -> None:
        options = _options(
            "-t", "8", "-m", "0.25", "-n", "3", "--metric", "MAX", "-p", ".py,.pyw"
        )
        assert options.min_token_match == 8
        assert options.similarity_threshold == 0.25
        assert options.maximum_comparisons == 3
        assert options.similarity_metric == SimilarityMetric.MAX
        assert options.suffixes == (".py", ".pyw")

    def test_clustering_values(self) -> None:
        options = _options(
            "--cluster-alg", "AGGLOMERATIVE",
            "--cluster-metric", "MIN",
            "--cluster-agglomerative-threshold", "0.4",
            "--cluster-agglomerative-inter-cluster-similarity", "MAX",
            "--cluster-spectral-bandwidth", "0.5",
            "--cluster-spectral-min-runs", "2",
            "--cluster-spectral-max-runs", "8",
        )
        clustering = options.clustering
        assert clustering.algorithm == ClusteringAlgorithm.AGGLOMERATIVE
        assert clustering.similarity_metric == SimilarityMetric.MIN
        assert clustering.agglomerative_threshold == 0.4
        assert (
            clustering.agglomerative_inter_cluster_similarity
            == InterClusterSimilarity.MAX
        )
        assert clustering.spectral_kernel_bandwidth == 0.5
        assert (clustering.spectral_min_runs, clustering.spectral_max_runs) == (2, 8)

    @pytest.mark.parametrize(
        ("argv", "preprocessor"),
        [
            (["--cluster-pp-none"], Preprocessor.NONE),
            (["--cluster-pp-cdf"], Preprocessor.CDF),
            (["--cluster-pp-percentile", "0.9"], Preprocessor.PERCENTILE),
            (["--cluster-pp-threshold", "0.3"], Preprocessor.THRESHOLD),
        ],
    )
    def test_preprocessor_flags(
        self, argv: list[str], preprocessor: Preprocessor
    ) -> None:
        assert _options(*argv).clustering.preprocessor == preprocessor

    def test_preprocessor_values(self) -> None:
        assert _options(
            "--cluster-pp-percentile", "0.9"
        ).clustering.preprocessor_percentile == 0.9
        assert _options(
            "--cluster-pp-threshold", "0.3"
        ).clustering.preprocessor_threshold == 0.3

    def test_cluster_skip(self) -> None:
        assert not _options("--cluster-skip").clustering.enabled

    def test_unknown_comparison_mode_falls_back(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING):
            options = _options("-c", "chronological")
        assert options.comparison_mode == ComparisonMode.NORMAL
        assert "event=unknown_comparison_mode mode=chronological" in caplog.text

    def test_invalid_threshold(self) -> None:
        with pytest.raises(ConfigError, match="similarity_threshold"):
            _options("-m", "2")

    def test_invalid_min_tokens(self) -> None:
        with pytest.raises(ConfigError, match="min_token_match"):
            _options("-t", "0")


class TestMain:
    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--version"])
        assert capsys.readouterr().out.startswith("codetile ")

    def test_no_root_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        main([])
        assert "usage: codetile" in capsys.readouterr().out

    def test_error_exits_with_status_one(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with (
            patch("codetile.cli.setup_logging"),
            pytest.raises(SystemExit) as exc_info,
        ):
            main([str(tmp_path / "missing")])
        assert exc_info.value.code == 1
        assert "Error: root directory" in capsys.readouterr().err

    def test_summary_printed(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        pytest.importorskip("tree_sitter_python")
        source = (
            "def f(xs):\n"
            "    total = 0\n"
            "    for x in xs:\n"
            "        total += g(x)\n"
            "    return total\n"
        )
        for name in ("one", "two"):
            (tmp_path / name).mkdir()
            (tmp_path / name / "main.py").write_text(source, encoding="utf-8")

        with patch("codetile.cli.setup_logging"):
            main([str(tmp_path), "-t", "3", "--cluster-skip"])

        out = capsys.readouterr().out
        assert "2 submissions compared, 1 comparisons" in out
        assert "100.0%  one <-> two" in out

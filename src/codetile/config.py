"""Environment-based settings and per-run detection options."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any, Self

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode

from codetile.constants import (
    AGGLOMERATIVE_THRESHOLD,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_SIMILARITY_THRESHOLD,
    PREPROCESSOR_PERCENTILE,
    PREPROCESSOR_THRESHOLD,
    SPECTRAL_GP_VARIANCE,
    SPECTRAL_KERNEL_BANDWIDTH,
    SPECTRAL_MAX_KMEANS_ITERATIONS,
    SPECTRAL_MAX_RUNS,
    SPECTRAL_MIN_RUNS,
    ClusteringAlgorithm,
    ComparisonMode,
    InterClusterSimilarity,
    Preprocessor,
    SimilarityMetric,
)
from codetile.errors import ConfigError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Reads from .env file and CODETILE_* environment variables."""

    # Logging
    log_level: str = "INFO"

    # Comparison worker pool
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1)
    comparison_timeout_seconds: float | None = Field(default=None, gt=0)

    # Submission loading
    skip_directories: Annotated[list[str], NoDecode] = [
        "__pycache__",
        "node_modules",
        ".git",
        ".svn",
        ".hg",
    ]

    @field_validator("skip_directories", mode="before")
    @classmethod
    def _parse_dirs(cls, v: Any) -> Any:
        """Accept comma-separated string or JSON array."""
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        if not isinstance(logging.getLevelName(v.upper()), int):
            raise ValueError(f"unknown log level: {v!r}")
        return v.upper()

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "CODETILE_",
        "extra": "ignore",
    }


class ClusteringOptions(BaseModel):
    """Options for the clustering engine."""

    enabled: bool = True
    algorithm: ClusteringAlgorithm = ClusteringAlgorithm.SPECTRAL
    similarity_metric: SimilarityMetric = SimilarityMetric.AVG

    # Spectral
    spectral_kernel_bandwidth: float = Field(
        default=SPECTRAL_KERNEL_BANDWIDTH, gt=0
    )
    spectral_gp_variance: float = Field(default=SPECTRAL_GP_VARIANCE, ge=0)
    spectral_min_runs: int = Field(default=SPECTRAL_MIN_RUNS, ge=1)
    spectral_max_runs: int = Field(default=SPECTRAL_MAX_RUNS, ge=1)
    spectral_max_kmeans_iterations: int = Field(
        default=SPECTRAL_MAX_KMEANS_ITERATIONS, ge=1
    )

    # Agglomerative
    agglomerative_threshold: float = Field(
        default=AGGLOMERATIVE_THRESHOLD, ge=0.0, le=1.0
    )
    agglomerative_inter_cluster_similarity: InterClusterSimilarity | None = None

    # Preprocessing
    preprocessor: Preprocessor = Preprocessor.CDF
    preprocessor_threshold: float = Field(
        default=PREPROCESSOR_THRESHOLD, ge=0.0, le=1.0
    )
    preprocessor_percentile: float = Field(
        default=PREPROCESSOR_PERCENTILE, ge=0.0, le=1.0
    )

    @model_validator(mode="after")
    def _validate_runs(self) -> Self:
        if self.spectral_max_runs < self.spectral_min_runs:
            raise ValueError(
                "spectral_max_runs must be >= spectral_min_runs"
            )
        return self

    model_config = {"frozen": True, "extra": "forbid"}


class DetectionOptions(BaseModel):
    """Options for one detection run (mirrors the command line)."""

    language: str = "python"
    min_token_match: int | None = Field(default=None, ge=1)
    similarity_threshold: float = Field(
        default=DEFAULT_SIMILARITY_THRESHOLD, ge=0.0, le=1.0
    )
    maximum_comparisons: int | None = Field(default=None, ge=1)
    similarity_metric: SimilarityMetric = SimilarityMetric.AVG
    # None: ordered when the language expects submission order
    comparison_mode: ComparisonMode | None = None
    base_code: str | None = None
    subdirectory: str | None = None
    suffixes: tuple[str, ...] = ()
    exclusion_file: Path | None = None
    clustering: ClusteringOptions = Field(default_factory=ClusteringOptions)

    @field_validator("suffixes", mode="before")
    @classmethod
    def _parse_suffixes(cls, v: Any) -> Any:
        """Accept a comma-separated string as well as a sequence."""
        if isinstance(v, str):
            return tuple(s.strip() for s in v.split(",") if s.strip())
        return v

    @field_validator("base_code", "subdirectory")
    @classmethod
    def _blank_is_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    model_config = {"frozen": True, "extra": "forbid"}


def _config_error(exc: ValidationError) -> ConfigError:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}"
        for err in exc.errors()
    )
    return ConfigError(f"invalid configuration: {details}")


def build_clustering_options(**values: Any) -> ClusteringOptions:
    """Build :class:`ClusteringOptions`, raising ConfigError on bad input."""
    try:
        return ClusteringOptions(**values)
    except ValidationError as exc:
        raise _config_error(exc) from exc


def build_options(**values: Any) -> DetectionOptions:
    """Build :class:`DetectionOptions`, raising ConfigError on bad input."""
    try:
        return DetectionOptions(**values)
    except ValidationError as exc:
        raise _config_error(exc) from exc


def load_settings(**overrides: Any) -> Settings:
    """Read :class:`Settings`, raising ConfigError on bad input."""
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        raise _config_error(exc) from exc
    logger.debug(
        "event=settings_loaded max_concurrency=%d timeout_s=%s",
        settings.max_concurrency,
        settings.comparison_timeout_seconds,
    )
    return settings

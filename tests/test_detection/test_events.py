"""Tests for progress events and the error hierarchy."""

from __future__ import annotations

import pytest

from codetile.constants import STAGE_LABELS, StageProgress
from codetile.errors import (
    CodetileError,
    ComparisonTimeoutError,
    ConfigError,
    MatchCancelledError,
    MatchInvariantError,
    SubmissionError,
)
from codetile.events import StageEvent


@pytest.mark.parametrize("name", list(STAGE_LABELS))
def test_every_stage_has_a_label(name: str) -> None:
    event = StageEvent(name=name, status=StageProgress.RUNNING)
    assert event.label == STAGE_LABELS[name]


def test_unknown_stage_has_no_label() -> None:
    with pytest.raises(KeyError):
        _ = StageEvent(name="publish", status=StageProgress.DONE).label


@pytest.mark.parametrize(
    ("error", "builtin"),
    [
        (ConfigError, ValueError),
        (ComparisonTimeoutError, TimeoutError),
        (MatchInvariantError, AssertionError),
    ],
)
def test_errors_are_also_builtin_kinds(
    error: type[CodetileError], builtin: type[Exception]
) -> None:
    assert issubclass(error, CodetileError)
    assert issubclass(error, builtin)


@pytest.mark.parametrize("error", [SubmissionError, MatchCancelledError])
def test_plain_codetile_errors(error: type[Exception]) -> None:
    assert issubclass(error, CodetileError)

"""Which submission pairs a run compares, and in which orientation."""

from __future__ import annotations

from collections.abc import Sequence

from codetile.constants import ComparisonMode
from codetile.submissions.schemas import Submission


def comparison_pairs(
    submissions: Sequence[Submission],
    mode: ComparisonMode = ComparisonMode.NORMAL,
) -> list[tuple[Submission, Submission]]:
    """Pairs to compare, each unordered pair exactly once.

    ``NORMAL`` pairs every submission with every later one. ``ORDERED``
    treats the sequence as a timeline: each submission is checked
    against the history before it, so the later submission comes first
    in every pair.
    """
    pairs: list[tuple[Submission, Submission]] = []
    match mode:
        case ComparisonMode.NORMAL:
            for i, first in enumerate(submissions):
                for second in submissions[i + 1:]:
                    pairs.append((first, second))
        case ComparisonMode.ORDERED:
            for i, current in enumerate(submissions):
                for earlier in submissions[:i]:
                    pairs.append((current, earlier))
    return pairs

"""Registry of tokenized submissions for one detection run."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from codetile.errors import ConfigError
from codetile.submissions.schemas import Submission
from codetile.tokens.schemas import TokenSequence

logger = logging.getLogger(__name__)


class SubmissionRegistry:
    """Owns every submission's token sequence, in registration order.

    At most one submission is the base code. Submissions that failed
    tokenization stay registered (so they can be reported) but are
    never handed out by :meth:`valid_submissions`.
    """

    def __init__(self) -> None:
        self._submissions: dict[str, Submission] = {}
        self._base_code: Submission | None = None

    def register(self, submission: Submission) -> Submission:
        if submission.id in self._submissions:
            raise ConfigError(f"duplicate submission id: {submission.id!r}")
        if submission.is_base_code:
            if self._base_code is not None:
                raise ConfigError(
                    "only one base code submission is allowed, got "
                    f"{self._base_code.id!r} and {submission.id!r}"
                )
            if submission.has_errors:
                raise ConfigError(
                    f"base code {submission.id!r} could not be tokenized"
                )
            self._base_code = submission
        self._submissions[submission.id] = submission

        if submission.has_errors:
            logger.warning(
                "event=submission_failed submission=%s", submission.id
            )
        else:
            logger.debug(
                "event=submission_registered submission=%s tokens=%d"
                " base_code=%s",
                submission.id,
                submission.token_count,
                submission.is_base_code,
            )
        return submission

    def add(
        self,
        submission_id: str,
        tokens: TokenSequence,
        *,
        root_path: Path | None = None,
        is_base_code: bool = False,
        has_errors: bool = False,
    ) -> Submission:
        """Create and register a submission in one call."""
        return self.register(
            Submission(
                id=submission_id,
                tokens=tokens,
                root_path=root_path,
                is_base_code=is_base_code,
                has_errors=has_errors,
            )
        )

    @property
    def base_code(self) -> Submission | None:
        return self._base_code

    def get(self, submission_id: str) -> Submission:
        try:
            return self._submissions[submission_id]
        except KeyError:
            raise KeyError(f"unknown submission: {submission_id!r}") from None

    def valid_submissions(self) -> list[Submission]:
        """Submissions eligible for comparison and clustering."""
        return [
            s
            for s in self._submissions.values()
            if not s.has_errors and not s.is_base_code
        ]

    def failed_submissions(self) -> list[Submission]:
        return [s for s in self._submissions.values() if s.has_errors]

    def __contains__(self, submission_id: object) -> bool:
        return submission_id in self._submissions

    def __iter__(self) -> Iterator[Submission]:
        return iter(self._submissions.values())

    def __len__(self) -> int:
        return len(self._submissions)

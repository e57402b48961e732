"""Shared test fixtures: in-memory submissions and registries."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import pytest

from codetile.config import Settings
from codetile.constants import FILE_END
from codetile.frontends import ParseResult
from codetile.submissions import SubmissionRegistry
from codetile.tokens import Token, TokenSequence

# Token kinds used across the matcher and comparison tests.
IF = "IF"
BLOCK_BEGIN = "BLOCK_BEGIN"
BLOCK_END = "BLOCK_END"
VARDEF = "VARDEF"
RETURN = "RETURN"
ASSIGN = "ASSIGN"
APPLY = "APPLY"
LOOP = "LOOP"


def seq(*kinds: str) -> TokenSequence:
    """Shorthand for a marker-free token sequence."""
    return TokenSequence.from_kinds(kinds)


def make_registry(
    submissions: dict[str, Sequence[str]],
    *,
    base_code: str | None = None,
    failed: Sequence[str] = (),
) -> SubmissionRegistry:
    """Registry with one in-memory submission per entry, in dict order."""
    registry = SubmissionRegistry()
    for name, kinds in submissions.items():
        registry.add(
            name,
            TokenSequence.from_kinds(kinds, file=f"{name}.src"),
            is_base_code=name == base_code,
            has_errors=name in failed,
        )
    return registry


@pytest.fixture
def settings() -> Settings:
    """Settings that ignore the developer's environment and .env file."""
    return Settings(_env_file=None, max_concurrency=2)  # type: ignore[call-arg]


@pytest.fixture
def three_submissions() -> SubmissionRegistry:
    """Two near copies and one unrelated submission."""
    shared = [IF, BLOCK_BEGIN, VARDEF, ASSIGN, APPLY, RETURN, BLOCK_END]
    return make_registry(
        {
            "alice": shared + [LOOP, ASSIGN],
            "bob": [LOOP, ASSIGN] + shared,
            "carol": [APPLY, APPLY, VARDEF, LOOP, RETURN, IF, ASSIGN],
        }
    )


@dataclass
class LineLanguage:
    """Fake frontend: every line of a file is one token of its own text."""

    name: str = "lines"
    short_name: str = "lines"
    suffixes: tuple[str, ...] = (".txt",)
    minimum_token_match: int = 2
    supports_columns: bool = False
    is_preformatted: bool = True
    uses_index: bool = False
    use_view_files: bool = False
    expects_submission_order: bool = False

    def customize_submission_order(
        self, submissions: list[Path]
    ) -> list[Path]:
        return sorted(submissions, key=lambda p: p.name, reverse=True)

    def parse(self, directory: Path, files: Sequence[Path]) -> ParseResult:
        tokens: list[Token] = []
        has_errors = False
        for rel in files:
            lines = (directory / rel).read_text(encoding="utf-8").splitlines()
            for number, line in enumerate(lines, 1):
                if line.strip() == "SYNTAX ERROR":
                    has_errors = True
                tokens.append(Token(kind=line.strip(), file=str(rel), line=number))
            tokens.append(Token(kind=FILE_END, file=str(rel), line=len(lines)))
        return ParseResult(tokens=TokenSequence(tuple(tokens)), has_errors=has_errors)

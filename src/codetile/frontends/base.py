"""Capability contract every language frontend satisfies.

Frontends satisfy :class:`Language` structurally (no inheritance). The
matching engine only sees the token sequence and the declared minimum
match length; the display flags are passed through for reporting.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from codetile.tokens.schemas import TokenSequence


@dataclass(frozen=True)
class ParseResult:
    """Tokens of one submission plus whatever went wrong producing them."""

    tokens: TokenSequence
    has_errors: bool = False
    errors: tuple[str, ...] = field(default_factory=tuple)


class Language(Protocol):
    name: str
    short_name: str
    suffixes: tuple[str, ...]
    minimum_token_match: int
    supports_columns: bool
    is_preformatted: bool
    uses_index: bool
    use_view_files: bool
    expects_submission_order: bool

    def customize_submission_order(
        self, submissions: list[Path]
    ) -> list[Path]: ...

    def parse(
        self, directory: Path, files: Sequence[Path]
    ) -> ParseResult: ...

"""Submission value type."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from codetile.tokens.schemas import TokenSequence


@dataclass(frozen=True)
class Submission:
    """One tokenized input (a directory or a single file)."""

    id: str
    tokens: TokenSequence
    root_path: Path | None = None
    is_base_code: bool = False
    has_errors: bool = False

    @property
    def token_count(self) -> int:
        return self.tokens.matchable_count()

"""Immutable token value types shared by frontends and the matcher."""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TypeAlias, overload

from codetile.constants import FILE_END

TokenKind: TypeAlias = Hashable


@dataclass(frozen=True)
class Token:
    """One syntactic construct occurrence in a submission.

    ``kind`` is opaque to the matcher: it is only compared for equality.
    ``line`` and ``column`` are 1-based; ``column`` and ``length`` are 0
    when the frontend does not know them.
    """

    kind: TokenKind
    file: str
    line: int
    column: int = 0
    length: int = 0

    @property
    def is_marker(self) -> bool:
        """Marker tokens (file ends) never participate in a match."""
        return self.kind == FILE_END


@dataclass(frozen=True)
class TokenSequence:
    """Ordered tokens of exactly one submission."""

    tokens: tuple[Token, ...] = ()
    _kinds: tuple[TokenKind, ...] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "tokens", tuple(self.tokens))
        object.__setattr__(
            self, "_kinds", tuple(t.kind for t in self.tokens)
        )

    @classmethod
    def from_kinds(
        cls, kinds: Iterable[TokenKind], file: str = "<memory>"
    ) -> TokenSequence:
        """Build a sequence from bare kinds (one token per line)."""
        return cls(
            tuple(
                Token(kind=k, file=file, line=i + 1)
                for i, k in enumerate(kinds)
            )
        )

    @property
    def kinds(self) -> tuple[TokenKind, ...]:
        return self._kinds

    @property
    def files(self) -> list[str]:
        """Distinct originating files, in order of first appearance."""
        return list(dict.fromkeys(t.file for t in self.tokens))

    def matchable_count(self) -> int:
        """Number of tokens that can take part in a tile."""
        return sum(1 for t in self.tokens if not t.is_marker)

    def __len__(self) -> int:
        return len(self.tokens)

    def __iter__(self) -> Iterator[Token]:
        return iter(self.tokens)

    @overload
    def __getitem__(self, index: int) -> Token: ...
    @overload
    def __getitem__(self, index: slice) -> Sequence[Token]: ...
    def __getitem__(self, index: int | slice) -> Token | Sequence[Token]:
        return self.tokens[index]

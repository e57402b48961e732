"""Token model: the only data frontends hand to the matching engine."""

from codetile.tokens.schemas import Token, TokenKind, TokenSequence

__all__ = [
    "Token",
    "TokenKind",
    "TokenSequence",
]

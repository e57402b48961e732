"""Language frontends: turn source files into token sequences."""

from codetile.errors import ConfigError
from codetile.frontends.base import Language, ParseResult
from codetile.frontends.tree_sitter_frontend import LANGUAGES, TreeSitterLanguage

__all__ = [
    "LANGUAGES",
    "Language",
    "ParseResult",
    "TreeSitterLanguage",
    "get_language",
]


def get_language(short_name: str) -> Language:
    """Look a frontend up by its command line short name."""
    try:
        return LANGUAGES[short_name.strip().lower()]
    except KeyError:
        raise ConfigError(
            f"unknown language {short_name!r}. "
            f"Valid: {', '.join(sorted(LANGUAGES))}"
        ) from None

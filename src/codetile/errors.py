"""Exception hierarchy.

Everything the library raises on purpose derives from
:class:`CodetileError`, so callers (the CLI in particular) can report
expected failures without catching programming errors.
"""

from __future__ import annotations


class CodetileError(Exception):
    """Base class for all expected failures."""


class ConfigError(CodetileError, ValueError):
    """Invalid configuration, rejected before any comparison runs."""


class SubmissionError(CodetileError):
    """A submission could not be read from disk."""


class ComparisonTimeoutError(CodetileError, TimeoutError):
    """The configured run timeout expired; the whole run is aborted."""


class MatchInvariantError(CodetileError, AssertionError):
    """Tiles overlap or undercut the minimum match length (a bug)."""


class MatchCancelledError(CodetileError):
    """Tiling was stopped before it finished (e.g. the run timed out)."""

"""Singleton logging configuration.

setup_logging() configures the root logger once per process; later
calls are no-ops, so the CLI and library callers can both call it.
"""

import logging

from codetile.constants import Verbosity

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] - %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

# Third-party loggers to suppress to WARNING
_SUPPRESSED_LOGGERS = (
    "sklearn",
    "tree_sitter",
)

_VERBOSITY_LEVELS: dict[Verbosity, str] = {
    Verbosity.QUIET: "WARNING",
    Verbosity.DEFAULT: "INFO",
    Verbosity.LONG: "DEBUG",
}

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure root logger and quiet third-party loggers.

    Idempotent; a second call is a no-op.
    """
    global _configured  # noqa: PLW0603
    if _configured:
        return
    _configured = True

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    for name in _SUPPRESSED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def verbosity_to_level(verbosity: str | None) -> str:
    """Map a command line verbosity name onto a logging level name."""
    if verbosity is None:
        return _VERBOSITY_LEVELS[Verbosity.DEFAULT]
    try:
        return _VERBOSITY_LEVELS[Verbosity(verbosity.lower())]
    except ValueError:
        return _VERBOSITY_LEVELS[Verbosity.DEFAULT]

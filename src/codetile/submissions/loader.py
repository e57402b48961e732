"""Discover submissions under a root directory and tokenize them."""

from __future__ import annotations

import logging
from pathlib import Path

import pathspec

from codetile.config import DetectionOptions, Settings
from codetile.errors import ConfigError, SubmissionError
from codetile.frontends.base import Language
from codetile.submissions.registry import SubmissionRegistry
from codetile.tokens.schemas import TokenSequence

logger = logging.getLogger(__name__)


def load_submissions(
    root: Path,
    language: Language,
    options: DetectionOptions,
    settings: Settings | None = None,
) -> SubmissionRegistry:
    """Tokenize every child of ``root`` into a :class:`SubmissionRegistry`.

    * Each directory below ``root`` is a multi-file submission; each
      plain file is a single-file submission.
    * Hidden entries and ``settings.skip_directories`` are skipped.
    * ``options.subdirectory`` narrows each submission to that child.
    * Files are filtered by suffix and by the exclusion file patterns.
    * A submission without any source file is registered as failed.
    """
    if settings is None:
        settings = Settings()
    root = Path(root)
    if not root.is_dir():
        raise ConfigError(f"root directory {root} does not exist")

    skip_dirs = set(settings.skip_directories)
    suffixes = tuple(options.suffixes) or tuple(language.suffixes)
    exclusion = _load_exclusion_spec(options.exclusion_file)

    try:
        entries = [
            item
            for item in sorted(root.iterdir())
            if not item.name.startswith(".") and item.name not in skip_dirs
        ]
    except OSError as exc:
        raise SubmissionError(f"cannot list {root}: {exc}") from exc

    if options.base_code is not None and options.base_code not in {
        e.name for e in entries
    }:
        raise ConfigError(
            f"base code {options.base_code!r} not found in {root}"
        )

    if language.expects_submission_order:
        entries = language.customize_submission_order(entries)

    registry = SubmissionRegistry()
    for entry in entries:
        directory, files = _submission_files(
            entry, options.subdirectory, suffixes, skip_dirs, exclusion
        )
        is_base_code = entry.name == options.base_code
        if not files:
            logger.warning(
                "event=submission_empty submission=%s", entry.name
            )
            registry.add(
                entry.name,
                TokenSequence(),
                root_path=entry,
                is_base_code=is_base_code,
                has_errors=True,
            )
            continue

        result = language.parse(directory, files)
        registry.add(
            entry.name,
            result.tokens,
            root_path=entry,
            is_base_code=is_base_code,
            has_errors=result.has_errors,
        )

    logger.info(
        "event=submissions_loaded total=%d valid=%d failed=%d base_code=%s",
        len(registry),
        len(registry.valid_submissions()),
        len(registry.failed_submissions()),
        options.base_code,
    )
    return registry


def _submission_files(
    entry: Path,
    subdirectory: str | None,
    suffixes: tuple[str, ...],
    skip_dirs: set[str],
    exclusion: pathspec.PathSpec,
) -> tuple[Path, list[Path]]:
    """Directory to parse from plus the files in it, relative and sorted."""
    if entry.is_file():
        keep = _has_suffix(entry, suffixes) and not exclusion.match_file(
            entry.name
        )
        return entry.parent, [Path(entry.name)] if keep else []

    directory = entry / subdirectory if subdirectory else entry
    if not directory.is_dir():
        return directory, []
    files = [
        path.relative_to(directory)
        for path in _walk_files(directory, skip_dirs)
        if _has_suffix(path, suffixes)
        and not exclusion.match_file(str(path.relative_to(directory)))
    ]
    return directory, sorted(files)


def _has_suffix(path: Path, suffixes: tuple[str, ...]) -> bool:
    # An empty suffix list accepts every file.
    return not suffixes or path.name.endswith(suffixes)


def _walk_files(current: Path, skip_dirs: set[str]) -> list[Path]:
    """All regular files below ``current``, skipping hidden directories.

    Symlinks that resolve outside ``current`` are skipped.
    """
    resolved_root = current.resolve()
    files: list[Path] = []
    pending = [current]
    while pending:
        folder = pending.pop()
        for item in sorted(folder.iterdir()):
            if item.is_symlink() and not item.resolve().is_relative_to(
                resolved_root
            ):
                continue
            if item.is_dir():
                if item.name.startswith(".") or item.name in skip_dirs:
                    continue
                pending.append(item)
            elif item.is_file():
                files.append(item)
    return files


def _load_exclusion_spec(path: Path | None) -> pathspec.PathSpec:
    """Exclusion file patterns, one per line (gitignore syntax)."""
    if path is None:
        return pathspec.PathSpec.from_lines("gitwildmatch", [])
    try:
        with open(path, encoding="utf-8") as f:
            return pathspec.PathSpec.from_lines("gitwildmatch", f)
    except OSError as exc:
        raise ConfigError(
            f"cannot read exclusion file {path}: {exc}"
        ) from exc

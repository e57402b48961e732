"""Greedy String Tiling over opaque token kinds.

Each round finds the longest run of equal, still-unconsumed tokens
shared by A and B, records it as a tile and consumes its positions in
both sequences. Rounds stop once the longest remaining run is shorter
than the minimum match length.

Candidate runs are found through an index of B's ``min_length``-token
windows keyed by their kinds, so a round only extends pairs whose first
``min_length`` tokens already agree. Runs are always extended against
the current consumption state, never the original sequences.

Ties between equally long runs go to the smallest ``start_a``, then the
smallest ``start_b``. The result depends only on the inputs.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable, Sequence
from typing import TypeAlias

from codetile.errors import (
    ConfigError,
    MatchCancelledError,
    MatchInvariantError,
)
from codetile.matching.schemas import Tile
from codetile.tokens.schemas import TokenKind, TokenSequence

logger = logging.getLogger(__name__)

KeyFunction: TypeAlias = Callable[[TokenKind], Hashable]
StopCheck: TypeAlias = Callable[[], bool]


def match(
    seq_a: TokenSequence,
    seq_b: TokenSequence,
    min_length: int,
    *,
    base_code: TokenSequence | None = None,
    mask_a: Iterable[int] | None = None,
    mask_b: Iterable[int] | None = None,
    key: KeyFunction | None = None,
    should_stop: StopCheck | None = None,
) -> list[Tile]:
    """Tile A against B and return the tiles in discovery order.

    ``mask_a`` / ``mask_b`` are positions already consumed before
    matching starts (typically by base code, see :func:`base_code_mask`).
    When ``base_code`` is given, any mask not supplied is computed here.
    ``key`` maps kinds onto comparison keys; two tokens match when their
    keys are equal (identity on kinds by default).

    ``should_stop`` is polled while tiling; once it returns True the
    call raises :class:`MatchCancelledError`.
    """
    _check_min_length(min_length)

    if base_code is not None:
        if mask_a is None:
            mask_a = base_code_mask(
                seq_a, base_code, min_length, key=key, should_stop=should_stop
            )
        if mask_b is None:
            mask_b = base_code_mask(
                seq_b, base_code, min_length, key=key, should_stop=should_stop
            )

    keys_a, marked_a = _prepare(seq_a, mask_a, key)
    keys_b, marked_b = _prepare(seq_b, mask_b, key)
    return _tile(keys_a, keys_b, marked_a, marked_b, min_length, should_stop)


def base_code_mask(
    seq: TokenSequence,
    base_code: TokenSequence,
    min_length: int,
    *,
    key: KeyFunction | None = None,
    should_stop: StopCheck | None = None,
) -> frozenset[int]:
    """Positions of ``seq`` consumed by tiling it against the base code."""
    _check_min_length(min_length)
    keys, marked = _prepare(seq, None, key)
    base_keys, base_marked = _prepare(base_code, None, key)
    tiles = _tile(
        keys, base_keys, marked, base_marked, min_length, should_stop
    )
    return frozenset(p for t in tiles for p in t.range_a)


def verify_tiles(tiles: Sequence[Tile], min_length: int) -> None:
    """Raise :class:`MatchInvariantError` unless tiles are exclusive.

    Checks that no tile is shorter than ``min_length`` and that no
    position of A or B is covered by two tiles.
    """
    seen_a: set[int] = set()
    seen_b: set[int] = set()
    for tile in tiles:
        if tile.length < min_length:
            raise MatchInvariantError(
                f"tile {tile} shorter than minimum {min_length}"
            )
        for seen, positions, side in (
            (seen_a, tile.range_a, "A"),
            (seen_b, tile.range_b, "B"),
        ):
            if not seen.isdisjoint(positions):
                raise MatchInvariantError(
                    f"tile {tile} overlaps an earlier tile in {side}"
                )
            seen.update(positions)


def _check_min_length(min_length: int) -> None:
    if min_length <= 0:
        raise ConfigError(
            f"minimum token match must be positive, got {min_length}"
        )


def _prepare(
    seq: TokenSequence,
    mask: Iterable[int] | None,
    key: KeyFunction | None,
) -> tuple[list[Hashable], bytearray]:
    """Comparison keys plus the initial consumption state.

    Marker tokens start out consumed so they never join a tile.
    """
    kinds = seq.kinds
    keys: list[Hashable] = list(kinds) if key is None else [key(k) for k in kinds]
    marked = bytearray(1 if t.is_marker else 0 for t in seq)
    if mask is not None:
        for pos in mask:
            marked[pos] = 1
    return keys, marked


def _prefix_counts(marked: bytearray) -> list[int]:
    """prefix[i] = number of consumed positions before i."""
    prefix = [0] * (len(marked) + 1)
    running = 0
    for i, m in enumerate(marked):
        running += m
        prefix[i + 1] = running
    return prefix


def _tile(
    keys_a: list[Hashable],
    keys_b: list[Hashable],
    marked_a: bytearray,
    marked_b: bytearray,
    min_length: int,
    should_stop: StopCheck | None = None,
) -> list[Tile]:
    len_a, len_b = len(keys_a), len(keys_b)
    if len_a < min_length or len_b < min_length:
        return []

    # Windows of B, built once; windows that later become consumed are
    # filtered per round through the prefix counts.
    windows_a = [
        tuple(keys_a[i:i + min_length])
        for i in range(len_a - min_length + 1)
    ]
    index: dict[tuple[Hashable, ...], list[int]] = defaultdict(list)
    prefix_b = _prefix_counts(marked_b)
    for j in range(len_b - min_length + 1):
        if prefix_b[j + min_length] == prefix_b[j]:
            index[tuple(keys_b[j:j + min_length])].append(j)

    tiles: list[Tile] = []
    while True:
        best = _longest_run(
            keys_a, keys_b, marked_a, marked_b,
            windows_a, index, min_length, should_stop,
        )
        if best is None:
            break
        tiles.append(best)
        for p in best.range_a:
            marked_a[p] = 1
        for p in best.range_b:
            marked_b[p] = 1

    logger.debug(
        "event=tiling_done len_a=%d len_b=%d tiles=%d",
        len_a, len_b, len(tiles),
    )
    return tiles


def _longest_run(
    keys_a: list[Hashable],
    keys_b: list[Hashable],
    marked_a: bytearray,
    marked_b: bytearray,
    windows_a: list[tuple[Hashable, ...]],
    index: dict[tuple[Hashable, ...], list[int]],
    min_length: int,
    should_stop: StopCheck | None = None,
) -> Tile | None:
    """Longest unconsumed common run of at least ``min_length`` tokens."""
    len_a, len_b = len(keys_a), len(keys_b)
    prefix_a = _prefix_counts(marked_a)
    prefix_b = _prefix_counts(marked_b)

    best: Tile | None = None
    best_length = min_length - 1

    for i, window in enumerate(windows_a):
        if should_stop is not None and should_stop():
            raise MatchCancelledError(
                f"tiling stopped after {i} of {len(windows_a)} windows"
            )
        if prefix_a[i + min_length] != prefix_a[i]:
            continue
        candidates = index.get(window)
        if not candidates:
            continue
        for j in candidates:
            if prefix_b[j + min_length] != prefix_b[j]:
                continue
            # A free, equal pair right before (i, j) starts a strictly
            # longer run that is visited earlier.
            if (
                i > 0
                and j > 0
                and not marked_a[i - 1]
                and not marked_b[j - 1]
                and keys_a[i - 1] == keys_b[j - 1]
            ):
                continue
            length = min_length
            while (
                i + length < len_a
                and j + length < len_b
                and not marked_a[i + length]
                and not marked_b[j + length]
                and keys_a[i + length] == keys_b[j + length]
            ):
                length += 1
            if length > best_length:
                best_length = length
                best = Tile(start_a=i, start_b=j, length=length)
    return best

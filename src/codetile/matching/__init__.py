"""Token matching: Greedy String Tiling between two token sequences."""

from codetile.matching.greedy_tiling import (
    KeyFunction,
    StopCheck,
    base_code_mask,
    match,
    verify_tiles,
)
from codetile.matching.schemas import Tile

__all__ = [
    "KeyFunction",
    "StopCheck",
    "Tile",
    "base_code_mask",
    "match",
    "verify_tiles",
]

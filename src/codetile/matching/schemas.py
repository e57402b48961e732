"""Value types produced by the matcher."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Tile:
    """A run of ``length`` equal tokens at ``start_a`` in A and ``start_b`` in B."""

    start_a: int
    start_b: int
    length: int

    @property
    def range_a(self) -> range:
        return range(self.start_a, self.start_a + self.length)

    @property
    def range_b(self) -> range:
        return range(self.start_b, self.start_b + self.length)

    def swapped(self) -> Tile:
        """The same tile seen from the other sequence."""
        return Tile(
            start_a=self.start_b, start_b=self.start_a, length=self.length
        )

"""Progress events emitted while a detection run advances."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeAlias

from codetile.constants import STAGE_LABELS, StageProgress


@dataclass(frozen=True)
class StageEvent:
    """One stage transition of a detection run."""

    name: str
    status: StageProgress
    message: str = ""
    duration_ms: float = 0.0

    @property
    def label(self) -> str:
        """User-friendly display label from STAGE_LABELS."""
        return STAGE_LABELS[self.name]


ProgressCallback: TypeAlias = Callable[[StageEvent], None]

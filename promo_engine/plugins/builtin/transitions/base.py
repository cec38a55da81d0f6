from abc import ABC
from typing import Optional

from ....domain.models.graph import Filter


class Transition(ABC):
    """Base class for clip transitions rendered with xfade."""

    name: str
    xfade: Optional[str] = None

    @property
    def is_cut(self) -> bool:
        return self.xfade is None

    def build_filter(self, duration: float, offset: float) -> Filter:
        """xfade filter joining two clips at `offset` seconds."""
        return Filter.of(
            "xfade",
            transition=self.xfade or "fade",
            duration=float(duration),
            offset=float(offset),
        )

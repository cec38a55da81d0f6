# -*- coding: utf-8 -*-
"""
Layout, sizing and batching value objects
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional


class LayoutMode(str, Enum):
    """Strategy for fitting an image into the output frame"""

    CROP_FILL = "crop_fill"
    LETTERBOX = "letterbox"
    BLUR_BACKGROUND = "blur_background"


@dataclass(frozen=True)
class LayoutPlan:
    """How one image is fitted into the frame"""

    mode: LayoutMode
    target: tuple[int, int]
    background_color: str = "0x2a2a2a"
    blur_radius: int = 30
    mismatch: float = 0.0


@dataclass(frozen=True)
class OverlayPlacement:
    """Computed size and position of an overlay graphic"""

    width: int
    height: int
    x: int
    y: int
    scale: float = 1.0
    anchor: str = "bottom-right"


@dataclass(frozen=True)
class SafeZone:
    """Inset rectangle kept clear of platform UI chrome"""

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top


@dataclass(frozen=True)
class SizingResult:
    """All overlay geometry for one request"""

    frame: tuple[int, int]
    logo: Optional[OverlayPlacement]
    review_card: Optional[OverlayPlacement]
    text_sizes: Mapping[str, int]
    safe_zone: SafeZone


@dataclass(frozen=True)
class RenderBatch:
    """Contiguous run of images rendered to one intermediate file"""

    index: int
    images: tuple[Path, ...]
    start_index: int
    has_overlap: bool
    image_duration: float
    duration: float
    layout_plans: tuple[LayoutPlan, ...] = field(default_factory=tuple)

    @property
    def image_count(self) -> int:
        return len(self.images)
